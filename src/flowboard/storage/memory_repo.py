# src/flowboard/storage/memory_repo.py

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from typing import Any

from bson import ObjectId

from ..tasks.errors import PersistenceFailure
from ..tasks.task_models import TaskList, TaskNode

logger = logging.getLogger(__name__)


class InMemoryTaskListRepo:
    """
    Process-local TaskListRepo used for demos when no MongoDB is configured.

    Stores the same document shape as MongoTaskListRepo (deep-copied on the way
    in and out), so nothing shares structure with the caller's objects.
    Data is lost on exit.
    """

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}

    async def fetch_lists(self, user_id: str) -> list[TaskList]:
        return [
            TaskList.from_doc({**copy.deepcopy(doc), "_id": list_id})
            for list_id, doc in self._docs.items()
            if doc.get("userId") == user_id
        ]

    async def create_list(self, user_id: str, name: str) -> str:
        list_id = str(ObjectId())
        self._docs[list_id] = {"userId": user_id, "name": name, "tasks": []}
        logger.debug("List inserted id=%s user=%s", list_id, user_id)
        return list_id

    async def replace_list_tasks(self, list_id: str, tasks: Sequence[TaskNode]) -> None:
        self._require(list_id)["tasks"] = [t.to_doc() for t in tasks]

    async def rename_list(self, list_id: str, name: str) -> None:
        self._require(list_id)["name"] = name

    async def delete_list(self, list_id: str) -> None:
        if self._docs.pop(list_id, None) is None:
            raise PersistenceFailure(f"list not found: {list_id}", user_message="List not found.")

    def _require(self, list_id: str) -> dict[str, Any]:
        doc = self._docs.get(list_id)
        if doc is None:
            raise PersistenceFailure(f"list not found: {list_id}", user_message="List not found.")
        return doc

    def count_lists(self) -> int:
        return len(self._docs)
