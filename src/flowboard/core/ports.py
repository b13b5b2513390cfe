# src/flowboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task core depends on Protocols instead of concrete implementations.
This keeps storage/LLM providers/presentation swappable and makes testing easier.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class SubtaskGenerator(Protocol):
    """Opaque text generation: task description -> raw model text (parsing is the caller's job)."""
    async def generate_subtasks(self, description: str) -> str: ...


class TaskListRepo(Protocol):
    """
    Persistence collaborator for task lists.

    replace_list_tasks is the only write the mutation coordinator relies on:
    it overwrites the list's whole `tasks` field.
    Implementations raise PersistenceFailure on any error.
    """

    async def fetch_lists(self, user_id: str) -> list[Any]: ...  # list[TaskList]
    async def create_list(self, user_id: str, name: str) -> str: ...
    async def replace_list_tasks(self, list_id: str, tasks: Sequence[Any]) -> None: ...
    async def rename_list(self, list_id: str, name: str) -> None: ...
    async def delete_list(self, list_id: str) -> None: ...


class NoticeLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class Notice:
    """A user-visible, non-fatal message (toast)."""

    level: NoticeLevel
    text: str


class Notifier(Protocol):
    """Presentation-side port: how the core surfaces notices to the user."""
    def notify(self, notice: Notice) -> None: ...


class TaskEvent(StrEnum):
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_LIST_COMPLETED = "TASK_LIST_COMPLETED"


class EventSink(Protocol):
    """Receives domain events (no effect on storage)."""
    def emit(self, event: TaskEvent, *, list_id: str, task_id: str | None = None) -> None: ...


class StoreListener(Protocol):
    """Called synchronously whenever the list store changes."""
    def __call__(self, lists: Sequence[Any]) -> None: ...


class NullNotifier:
    def notify(self, notice: Notice) -> None:
        return


class NullEventSink:
    def emit(self, event: TaskEvent, *, list_id: str, task_id: str | None = None) -> None:
        return
