# src/flowboard/tasks/decomposer.py

"""
AI task breakdown.

Pipeline:
- ask the text-generation collaborator for a JSON array of {name, priority}
- strip optional code fences, parse, validate each entry
- build one parent task (the original description) holding the accepted
  subtasks and insert it through the coordinator as a single write

A failed AI call creates nothing (GenerationFailure). A response that is not
a usable JSON array still creates the parent task, with no subtasks and a
warning (FormatError arm).
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from ..core.ports import LLMClient, Notice, NoticeLevel, Notifier, NullNotifier, SubtaskGenerator
from ..llm.client import friendly_llm_error_message
from .coordinator import DEFAULT_TASK_NAME_MAX_LEN, MutationCoordinator, MutationResult
from .errors import GenerationFailure, InvalidTarget, TaskTreeError
from .task_models import Priority, TaskNode, create_new_task
from .tree_ops import validate_name

logger = logging.getLogger(__name__)

FORMAT_WARNING = "AI format issue. Added main task only."

SUBTASK_SYSTEM_PROMPT = "You break tasks down into actionable subtasks and answer with raw JSON only."

BREAKDOWN_PROMPT_TEMPLATE = """\
Break the task below down into 5-8 actionable, high-level subtasks.

Rules:
1. Cover the major steps needed to finish the task; skip micro-steps.
2. Start every subtask with an action verb (Research, Design, Write, Review, Schedule, ...).
3. Give each subtask a priority: 3 (High), 2 (Medium), 1 (Low), 0 (None, optional items).
4. Answer with a JSON array of objects with exactly two keys:
   "name" (string) and "priority" (integer 0, 1, 2 or 3).

Output ONLY the raw JSON array: no introduction, no explanation, no markdown code fences.

Task: "{task}"

JSON array:
"""

_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?(.*?)\n?[ \t]*```$", re.DOTALL)


def build_breakdown_prompt(description: str) -> str:
    return BREAKDOWN_PROMPT_TEMPLATE.format(task=description.strip())


def strip_code_fences(text: str) -> str:
    s = (text or "").strip()
    m = _FENCE_RE.match(s)
    if m:
        return m.group(1).strip()
    return s


@dataclass(slots=True, frozen=True)
class SubtasksParsed:
    subtasks: tuple[TaskNode, ...]
    discarded: int = 0


@dataclass(slots=True, frozen=True)
class FormatError:
    reason: str


ParseResult = SubtasksParsed | FormatError


def _coerce_priority(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int) or not Priority.NONE <= raw <= Priority.HIGH:
        return None
    return raw


def parse_subtasks(raw_text: str, *, name_max_len: int = DEFAULT_TASK_NAME_MAX_LEN) -> ParseResult:
    """
    Parse the model output into validated subtask nodes.

    Entries without a non-empty string name or an integer priority in 0..3
    are dropped; only a non-array (or unparseable) payload is a FormatError.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        return FormatError("empty response")

    try:
        data = json.loads(strip_code_fences(raw_text))
    except json.JSONDecodeError as e:
        return FormatError(f"invalid JSON: {e.msg}")

    if not isinstance(data, list):
        return FormatError(f"expected a JSON array, got {type(data).__name__}")

    out: list[TaskNode] = []
    discarded = 0
    for item in data:
        if not isinstance(item, dict):
            discarded += 1
            continue
        name = item.get("name")
        priority = _coerce_priority(item.get("priority"))
        if not isinstance(name, str) or not name.strip() or priority is None:
            discarded += 1
            continue
        out.append(create_new_task(name.strip()[:name_max_len], priority=Priority(priority)))

    return SubtasksParsed(subtasks=tuple(out), discarded=discarded)


class LLMSubtaskGenerator:
    """SubtaskGenerator backed by a (blocking, streaming) LLMClient."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    def _generate_sync(self, description: str) -> str:
        messages = [{"role": "user", "content": build_breakdown_prompt(description)}]
        return "".join(self._llm.stream_chat(messages, SUBTASK_SYSTEM_PROMPT))

    async def generate_subtasks(self, description: str) -> str:
        # The LLM client blocks on network I/O; keep the event loop free.
        try:
            return await asyncio.to_thread(self._generate_sync, description)
        except Exception as e:
            raise RuntimeError(friendly_llm_error_message(e)) from e


class TaskDecomposer:
    def __init__(
        self,
        coordinator: MutationCoordinator,
        generator: SubtaskGenerator,
        *,
        notifier: Notifier | None = None,
        description_max_len: int = DEFAULT_TASK_NAME_MAX_LEN,
        name_max_len: int = DEFAULT_TASK_NAME_MAX_LEN,
    ) -> None:
        self._coordinator = coordinator
        self._generator = generator
        self._notifier: Notifier = notifier or NullNotifier()
        self._description_max_len = int(description_max_len)
        self._name_max_len = int(name_max_len)
        self._busy: set[str] = set()

    def is_busy(self, list_id: str) -> bool:
        return list_id in self._busy

    async def decompose(self, list_id: str, description: str) -> MutationResult:
        """Create `description` as a task with AI-generated subtasks in one write."""
        try:
            self._coordinator.store.require_mutable(list_id)
            clean = validate_name(description, max_len=self._description_max_len, what="Task description")
            if list_id in self._busy:
                raise InvalidTarget(
                    f"breakdown already running: {list_id}",
                    user_message="An AI breakdown is already running for this list.",
                )
        except TaskTreeError as e:
            self._notify(NoticeLevel.WARNING, e.user_message)
            return MutationResult(ok=False, error=e, list_id=list_id)

        self._busy.add(list_id)
        try:
            try:
                raw = await self._generator.generate_subtasks(clean)
            except Exception as e:
                failure = GenerationFailure(
                    f"subtask generation failed: {e}",
                    user_message=f"AI Breakdown Failed: {str(e).strip() or e.__class__.__name__}",
                )
                logger.warning("AI breakdown failed list=%s: %s", list_id, e)
                self._notify(NoticeLevel.ERROR, failure.user_message)
                return MutationResult(ok=False, error=failure, list_id=list_id)

            parsed = parse_subtasks(raw, name_max_len=self._name_max_len)
            warning: str | None = None
            if isinstance(parsed, FormatError):
                logger.warning("AI breakdown format issue list=%s: %s", list_id, parsed.reason)
                subtasks: tuple[TaskNode, ...] = ()
                warning = FORMAT_WARNING
            else:
                subtasks = parsed.subtasks
                if parsed.discarded:
                    logger.info("AI breakdown dropped %d malformed entries list=%s", parsed.discarded, list_id)

            parent = create_new_task(clean).with_subtasks(subtasks)
            logger.info("AI breakdown list=%s task=%s subtasks=%d", list_id, parent.id, len(subtasks))
            return await self._coordinator.insert_task(list_id, parent, warning=warning)
        finally:
            self._busy.discard(list_id)

    def _notify(self, level: NoticeLevel, text: str) -> None:
        try:
            self._notifier.notify(Notice(level=level, text=text))
        except Exception:
            logger.exception("Notifier failed")
