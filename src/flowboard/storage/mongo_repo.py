# src/flowboard/storage/mongo_repo.py

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..tasks.errors import PersistenceFailure
from ..tasks.task_models import TaskList, TaskNode

logger = logging.getLogger(__name__)


def _object_id(list_id: str) -> ObjectId:
    try:
        return ObjectId(list_id)
    except (InvalidId, TypeError) as e:
        raise PersistenceFailure(f"invalid list id: {list_id!r}", user_message="Invalid ID") from e


class MongoTaskListRepo:
    """
    One MongoDB document per task list:

        {_id, userId, name, tasks: [{_id, name, completed, priority, subtasks: [...]}], createdAt, updatedAt}

    Writes replace the whole `tasks` field. When owner_id is set, every write
    is additionally filtered by userId so one user cannot touch another's list.
    """

    def __init__(self, collection: AsyncIOMotorCollection, *, owner_id: str | None = None) -> None:
        self._col = collection
        self._owner_id = owner_id or None

    @classmethod
    def from_settings(cls, settings, *, owner_id: str | None = None) -> MongoTaskListRepo:
        uri = str(getattr(settings, "mongodb_uri", "") or "").strip()
        if not uri:
            raise RuntimeError("MongoDB URI is not set. Set FLOWBOARD_MONGODB_URI in your .env.")
        timeout_ms = int(getattr(settings, "mongodb_timeout_ms", 5000))
        client: AsyncIOMotorClient = AsyncIOMotorClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        db = client[str(getattr(settings, "mongodb_database", "Flowivate"))]
        col = db[str(getattr(settings, "mongodb_collection", "taskLists"))]
        logger.info("MongoTaskListRepo ready db=%s collection=%s", db.name, col.name)
        return cls(col, owner_id=owner_id)

    def close(self) -> None:
        self._col.database.client.close()

    def _filter(self, list_id: str) -> dict[str, Any]:
        flt: dict[str, Any] = {"_id": _object_id(list_id)}
        if self._owner_id is not None:
            flt["userId"] = self._owner_id
        return flt

    async def fetch_lists(self, user_id: str) -> list[TaskList]:
        try:
            docs = await self._col.find({"userId": user_id}).sort("createdAt", 1).to_list(length=None)
        except PyMongoError as e:
            logger.exception("fetch_lists failed user=%s", user_id)
            raise PersistenceFailure(f"fetch failed: {e}", user_message="Error loading tasks.") from e
        return [TaskList.from_doc(d) for d in docs]

    async def create_list(self, user_id: str, name: str) -> str:
        now = time.time()
        doc = {"userId": user_id, "name": name, "tasks": [], "createdAt": now, "updatedAt": now}
        try:
            res = await self._col.insert_one(doc)
        except PyMongoError as e:
            logger.exception("create_list failed user=%s", user_id)
            raise PersistenceFailure(f"insert failed: {e}", user_message="Failed to save list.") from e
        list_id = str(res.inserted_id)
        logger.debug("List inserted id=%s user=%s", list_id, user_id)
        return list_id

    async def replace_list_tasks(self, list_id: str, tasks: Sequence[TaskNode]) -> None:
        docs = [t.to_doc() for t in tasks]
        await self._update(list_id, {"tasks": docs})

    async def rename_list(self, list_id: str, name: str) -> None:
        await self._update(list_id, {"name": name})

    async def _update(self, list_id: str, fields: dict[str, Any]) -> None:
        flt = self._filter(list_id)
        try:
            res = await self._col.update_one(flt, {"$set": {**fields, "updatedAt": time.time()}})
        except PyMongoError as e:
            logger.exception("update failed list=%s", list_id)
            raise PersistenceFailure(f"update failed: {e}", user_message="Failed to update list.") from e
        if res.matched_count == 0:
            raise PersistenceFailure(f"list not found: {list_id}", user_message="List not found.")

    async def delete_list(self, list_id: str) -> None:
        flt = self._filter(list_id)
        try:
            res = await self._col.delete_one(flt)
        except PyMongoError as e:
            logger.exception("delete_list failed list=%s", list_id)
            raise PersistenceFailure(f"delete failed: {e}", user_message="Failed to delete list.") from e
        if res.deleted_count == 0:
            raise PersistenceFailure(f"list not found: {list_id}", user_message="List not found.")
