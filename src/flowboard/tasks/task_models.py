# src/flowboard/tasks/task_models.py

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any

PLACEHOLDER_PREFIX = "placeholder-"


class Priority(IntEnum):
    """Task priority levels (display: None / Low (!) / Medium (!!) / High (!!!))."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return _PRIORITY_LABELS[self]

    @classmethod
    def from_db(cls, raw: Any) -> Priority:
        # bool is an int subclass; a stored true/false is not a priority.
        if isinstance(raw, bool) or not isinstance(raw, int):
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


_PRIORITY_LABELS = {
    Priority.NONE: "None",
    Priority.LOW: "Low (!)",
    Priority.MEDIUM: "Medium (!!)",
    Priority.HIGH: "High (!!!)",
}


def new_task_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class TaskNode:
    """
    Immutable task tree node.

    Edits never mutate a node; they produce a replacement via dataclasses.replace().
    `subtasks` is a tuple so two trees compare equal by value.
    """

    id: str
    name: str
    completed: bool = False
    priority: int = Priority.NONE
    subtasks: tuple[TaskNode, ...] = ()

    def with_subtasks(self, subtasks: Iterable[TaskNode]) -> TaskNode:
        return replace(self, subtasks=tuple(subtasks))

    def to_doc(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "completed": self.completed,
            "priority": int(self.priority),
            "subtasks": [t.to_doc() for t in self.subtasks],
        }

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> TaskNode:
        """
        Build a node from a stored document, defaulting every missing field.

        Accepts both the stored shape (`_id`) and the in-memory shape (`id`).
        """
        raw_id = doc.get("_id", doc.get("id"))
        raw_subtasks = doc.get("subtasks")
        subtasks: tuple[TaskNode, ...] = ()
        if isinstance(raw_subtasks, list):
            subtasks = tuple(cls.from_doc(s) for s in raw_subtasks if isinstance(s, Mapping))
        return cls(
            id=str(raw_id) if raw_id else new_task_id(),
            name=str(doc.get("name") or ""),
            completed=bool(doc.get("completed") or False),
            priority=Priority.from_db(doc.get("priority")),
            subtasks=subtasks,
        )


def create_new_task(name: str, *, priority: int = Priority.NONE) -> TaskNode:
    return TaskNode(id=new_task_id(), name=name.strip(), completed=False, priority=priority)


Forest = tuple[TaskNode, ...]


@dataclass(frozen=True, slots=True)
class TaskList:
    """
    A named forest of tasks.

    id is None only for a list that was never persisted; placeholder preview
    lists carry an id with PLACEHOLDER_PREFIX instead so the UI can key them.
    """

    id: str | None
    name: str
    tasks: Forest = ()
    user_id: str | None = field(default=None, compare=False)

    @property
    def is_placeholder(self) -> bool:
        return self.id is None or self.id.startswith(PLACEHOLDER_PREFIX)

    def with_tasks(self, tasks: Iterable[TaskNode]) -> TaskList:
        return replace(self, tasks=tuple(tasks))

    def to_doc(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "name": self.name,
            "tasks": [t.to_doc() for t in self.tasks],
        }
        if self.user_id is not None:
            doc["userId"] = self.user_id
        return doc

    @classmethod
    def from_doc(cls, doc: Mapping[str, Any]) -> TaskList:
        raw_tasks = doc.get("tasks")
        tasks: Forest = ()
        if isinstance(raw_tasks, list):
            tasks = tuple(TaskNode.from_doc(t) for t in raw_tasks if isinstance(t, Mapping))
        raw_id = doc.get("_id", doc.get("id"))
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            name=str(doc.get("name") or "Unnamed List"),
            tasks=tasks,
            user_id=doc.get("userId"),
        )
