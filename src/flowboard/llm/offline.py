# src/flowboard/llm/offline.py

from __future__ import annotations

import json
import re
from collections.abc import Iterable

from ..core.ports import ChatMessage

_TASK_RE = re.compile(r'Task:\s*"(.*)"', re.DOTALL)


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Subtask breakdown prompts -> a fixed, valid JSON plan for the quoted task
    - Anything else -> a short "offline" notice
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        m = _TASK_RE.search(user_text)
        if m is None:
            yield "Offline demo mode: no external LLM is configured."
            return

        task = m.group(1).strip() or "the task"
        plan = [
            {"name": f"Research what '{task}' needs", "priority": 2},
            {"name": "Outline the main steps", "priority": 3},
            {"name": "Do the first step", "priority": 3},
            {"name": "Review progress", "priority": 1},
            {"name": "Wrap up and tidy loose ends", "priority": 0},
        ]
        yield json.dumps(plan, ensure_ascii=False)
