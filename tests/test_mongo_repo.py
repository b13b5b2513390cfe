# tests/test_mongo_repo.py

from __future__ import annotations

import copy
from types import SimpleNamespace
from typing import Any

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from flowboard.storage.mongo_repo import MongoTaskListRepo
from flowboard.tasks.errors import PersistenceFailure

from .fakes import sample_forest


class _Cursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int) -> _Cursor:
        self._docs = sorted(self._docs, key=lambda d: d.get(key, 0), reverse=direction < 0)
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        return list(self._docs)


class FakeCollection:
    """The subset of AsyncIOMotorCollection used by MongoTaskListRepo."""

    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.error: Exception | None = None

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    @staticmethod
    def _match(doc: dict[str, Any], flt: dict[str, Any]) -> bool:
        return all(doc.get(k) == v for k, v in flt.items())

    def find(self, flt: dict[str, Any]) -> _Cursor:
        self._check()
        return _Cursor([copy.deepcopy(d) for d in self.docs if self._match(d, flt)])

    async def insert_one(self, doc: dict[str, Any]) -> SimpleNamespace:
        self._check()
        oid = ObjectId()
        self.docs.append({**copy.deepcopy(doc), "_id": oid})
        return SimpleNamespace(inserted_id=oid)

    async def update_one(self, flt: dict[str, Any], update: dict[str, Any]) -> SimpleNamespace:
        self._check()
        for d in self.docs:
            if self._match(d, flt):
                d.update(copy.deepcopy(update["$set"]))
                return SimpleNamespace(matched_count=1)
        return SimpleNamespace(matched_count=0)

    async def delete_one(self, flt: dict[str, Any]) -> SimpleNamespace:
        self._check()
        for i, d in enumerate(self.docs):
            if self._match(d, flt):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


@pytest.mark.asyncio
async def test_create_fetch_and_replace_tasks() -> None:
    col = FakeCollection()
    repo = MongoTaskListRepo(col)

    list_id = await repo.create_list("alice", "Work")
    await repo.create_list("bob", "Other")
    await repo.replace_list_tasks(list_id, sample_forest())

    stored = next(d for d in col.docs if str(d["_id"]) == list_id)
    assert stored["userId"] == "alice"
    assert stored["tasks"][0]["_id"] == "t1"
    assert stored["tasks"][0]["subtasks"][1] == {
        "_id": "s2",
        "name": "Sources",
        "completed": True,
        "priority": 0,
        "subtasks": [],
    }
    assert stored["updatedAt"] >= stored["createdAt"]

    (lst,) = await repo.fetch_lists("alice")
    assert lst.id == list_id
    assert lst.name == "Work"
    assert lst.tasks == sample_forest()


@pytest.mark.asyncio
async def test_fetch_defaults_sparse_documents() -> None:
    col = FakeCollection()
    col.docs.append({"_id": ObjectId(), "userId": "alice", "tasks": [{"name": "No id", "priority": "high"}]})
    repo = MongoTaskListRepo(col)

    (lst,) = await repo.fetch_lists("alice")
    assert lst.name == "Unnamed List"
    (task,) = lst.tasks
    assert task.id
    assert task.priority == 0
    assert task.completed is False


@pytest.mark.asyncio
async def test_owner_filter_blocks_foreign_lists() -> None:
    col = FakeCollection()
    bobs = await MongoTaskListRepo(col).create_list("bob", "Bob's")
    repo = MongoTaskListRepo(col, owner_id="alice")

    with pytest.raises(PersistenceFailure) as ei:
        await repo.rename_list(bobs, "Mine now")
    assert ei.value.user_message == "List not found."
    with pytest.raises(PersistenceFailure):
        await repo.delete_list(bobs)
    assert col.docs[0]["name"] == "Bob's"


@pytest.mark.asyncio
async def test_invalid_id_is_rejected_before_querying() -> None:
    repo = MongoTaskListRepo(FakeCollection())
    with pytest.raises(PersistenceFailure) as ei:
        await repo.replace_list_tasks("not-an-object-id", ())
    assert ei.value.user_message == "Invalid ID"


@pytest.mark.asyncio
async def test_driver_errors_become_persistence_failures() -> None:
    col = FakeCollection()
    repo = MongoTaskListRepo(col)
    list_id = await repo.create_list("alice", "Work")
    col.error = ServerSelectionTimeoutError("no servers")

    with pytest.raises(PersistenceFailure):
        await repo.fetch_lists("alice")
    with pytest.raises(PersistenceFailure):
        await repo.replace_list_tasks(list_id, ())
    with pytest.raises(PersistenceFailure):
        await repo.create_list("alice", "More")
    with pytest.raises(PersistenceFailure):
        await repo.delete_list(list_id)
