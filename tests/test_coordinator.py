# tests/test_coordinator.py

from __future__ import annotations

import asyncio

import pytest

from flowboard.core.ports import NoticeLevel, TaskEvent
from flowboard.tasks.coordinator import MutationCoordinator
from flowboard.tasks.errors import InvalidTarget, PersistenceFailure, ValidationError
from flowboard.tasks.list_store import ListStore
from flowboard.tasks.task_models import TaskList
from flowboard.tasks.tree_ops import completion_ratio, find_by_id

from .fakes import (
    EMPTY_LIST_ID,
    WORK_LIST_ID,
    FakeTaskListRepo,
    RecordingEventSink,
    RecordingNotifier,
    make_node,
)


def _tasks(store: ListStore, list_id: str = WORK_LIST_ID):
    return store.get(list_id).tasks


@pytest.mark.asyncio
async def test_add_task_to_empty_list(coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo) -> None:
    result = await coordinator.add_task(EMPTY_LIST_ID, "Write report")

    assert result.ok is True
    (node,) = _tasks(store, EMPTY_LIST_ID)
    assert node.id == result.task_id
    assert node.name == "Write report"
    assert node.completed is False
    assert node.priority == 0
    assert completion_ratio(_tasks(store, EMPTY_LIST_ID)) == "0/1"
    # one whole-tree replace carrying exactly the new forest
    assert repo.writes == [(EMPTY_LIST_ID, _tasks(store, EMPTY_LIST_ID))]


@pytest.mark.asyncio
async def test_add_subtask_under_parent(coordinator: MutationCoordinator, store: ListStore) -> None:
    result = await coordinator.add_task(WORK_LIST_ID, "Draft intro", parent_id="s1")
    assert result.ok is True
    s1 = find_by_id(_tasks(store), "s1")
    assert [t.name for t in s1.subtasks] == ["Draft intro"]


@pytest.mark.asyncio
async def test_add_task_unknown_parent(coordinator: MutationCoordinator, repo: FakeTaskListRepo) -> None:
    result = await coordinator.add_task(WORK_LIST_ID, "Orphan", parent_id="missing")
    assert result.ok is False
    assert isinstance(result.error, InvalidTarget)
    assert result.message == "Parent task not found."
    assert repo.writes == []


@pytest.mark.asyncio
async def test_optimistic_value_is_visible_before_persistence_returns(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    seen: list[bool] = []
    store.subscribe(lambda lists: seen.append(find_by_id(lists[0].tasks, "t2").completed))
    gate = repo.hold_next_write()

    pending = asyncio.create_task(coordinator.toggle_completion(WORK_LIST_ID, "t2"))
    await asyncio.sleep(0)

    assert find_by_id(_tasks(store), "t2").completed is True
    assert seen == [True]
    assert coordinator.is_pending(WORK_LIST_ID)
    assert repo.writes == []

    gate.set()
    result = await pending
    assert result.ok is True
    assert not coordinator.is_pending(WORK_LIST_ID)
    assert store.is_fresh(WORK_LIST_ID)


@pytest.mark.asyncio
async def test_failed_write_rolls_back_and_notifies(
    coordinator: MutationCoordinator,
    store: ListStore,
    repo: FakeTaskListRepo,
    notifier: RecordingNotifier,
) -> None:
    before = _tasks(store)
    repo.fail_writes = True

    result = await coordinator.set_priority(WORK_LIST_ID, "t3", 0)

    assert result.ok is False
    assert isinstance(result.error, PersistenceFailure)
    assert _tasks(store) == before
    assert notifier.texts(NoticeLevel.ERROR) == ["Failed to update list: Network error"]
    assert not coordinator.is_pending(WORK_LIST_ID)
    assert not store.is_fresh(WORK_LIST_ID)

    # the list stays usable
    repo.fail_writes = False
    result = await coordinator.set_priority(WORK_LIST_ID, "t3", 0)
    assert result.ok is True
    assert find_by_id(_tasks(store), "t3").priority == 0


@pytest.mark.asyncio
async def test_rollback_uses_own_snapshot_when_later_write_fails_first(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    gate1 = repo.hold_next_write()
    gate2 = repo.hold_next_write(fail=True)

    first = asyncio.create_task(coordinator.toggle_completion(WORK_LIST_ID, "t2"))
    await asyncio.sleep(0)
    after_first = _tasks(store)
    second = asyncio.create_task(coordinator.rename_task(WORK_LIST_ID, "t3", "Book train"))
    await asyncio.sleep(0)
    assert find_by_id(_tasks(store), "t3").name == "Book train"

    gate2.set()
    result2 = await second
    assert result2.ok is False
    # back to the state right before the second edit, the first edit survives
    assert _tasks(store) == after_first
    assert find_by_id(_tasks(store), "t2").completed is True

    gate1.set()
    result1 = await first
    assert result1.ok is True
    assert _tasks(store) == after_first
    assert repo.lists[WORK_LIST_ID].tasks == after_first


@pytest.mark.asyncio
async def test_latest_write_wins_when_older_write_fails_last(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    gate1 = repo.hold_next_write(fail=True)
    gate2 = repo.hold_next_write()

    first = asyncio.create_task(coordinator.toggle_completion(WORK_LIST_ID, "t2"))
    await asyncio.sleep(0)
    second = asyncio.create_task(coordinator.rename_task(WORK_LIST_ID, "t3", "Book train"))
    await asyncio.sleep(0)
    after_both = _tasks(store)

    gate1.set()
    result1 = await first
    assert result1.ok is False

    gate2.set()
    result2 = await second
    assert result2.ok is True
    # the server holds the second forest; the store converges on it
    assert repo.lists[WORK_LIST_ID].tasks == after_both
    assert _tasks(store) == after_both


@pytest.mark.asyncio
async def test_confirmed_newer_write_survives_older_failure(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    gate1 = repo.hold_next_write(fail=True)
    gate2 = repo.hold_next_write()

    first = asyncio.create_task(coordinator.toggle_completion(WORK_LIST_ID, "t2"))
    await asyncio.sleep(0)
    second = asyncio.create_task(coordinator.rename_task(WORK_LIST_ID, "t3", "Book train"))
    await asyncio.sleep(0)
    after_both = _tasks(store)

    gate2.set()
    result2 = await second
    assert result2.ok is True

    gate1.set()
    result1 = await first
    assert result1.ok is False
    assert repo.lists[WORK_LIST_ID].tasks == after_both
    assert _tasks(store) == after_both

    # the next edit builds on the confirmed forest
    await coordinator.set_priority(WORK_LIST_ID, "t1", 2)
    server = repo.lists[WORK_LIST_ID].tasks
    assert find_by_id(server, "t3").name == "Book train"
    assert find_by_id(server, "t2").completed is True
    assert find_by_id(server, "t1").priority == 2


@pytest.mark.asyncio
async def test_commit_rejects_list_without_id(coordinator: MutationCoordinator, repo: FakeTaskListRepo) -> None:
    pending = TaskList(id=None, name="Groceries", tasks=(), user_id="user-1")
    result = await coordinator._commit(pending, (make_node("a"),), action="add_task")
    assert isinstance(result.error, InvalidTarget)
    assert result.message == "This list is still being saved."
    assert repo.writes == []


@pytest.mark.asyncio
async def test_placeholder_lists_are_rejected_before_any_write() -> None:
    store = ListStore()
    repo = FakeTaskListRepo()
    notifier = RecordingNotifier()
    coordinator = MutationCoordinator(store, repo, notifier=notifier)
    (placeholder,) = store.lists
    before = placeholder.tasks

    result = await coordinator.add_task(placeholder.id, "Nope")
    assert result.ok is False
    assert isinstance(result.error, InvalidTarget)
    assert notifier.texts(NoticeLevel.WARNING) == ["Sign in to edit your task lists."]

    result = await coordinator.toggle_completion(placeholder.id, before[0].id)
    assert result.ok is False
    assert store.lists[0].tasks == before
    assert repo.writes == []


@pytest.mark.asyncio
async def test_unknown_list_is_invalid_target(coordinator: MutationCoordinator, repo: FakeTaskListRepo) -> None:
    result = await coordinator.delete_task("nope", "t1")
    assert isinstance(result.error, InvalidTarget)
    assert result.message == "List not found."
    assert repo.writes == []


@pytest.mark.asyncio
async def test_validation_errors_skip_optimistic_apply(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    before = _tasks(store)

    blank = await coordinator.add_task(WORK_LIST_ID, "   ")
    assert isinstance(blank.error, ValidationError)

    bad_prio = await coordinator.set_priority(WORK_LIST_ID, "t1", 4)
    assert isinstance(bad_prio.error, ValidationError)
    assert bad_prio.message == "Priority must be 0-3."

    too_long = await coordinator.add_task(WORK_LIST_ID, "x" * 201)
    assert isinstance(too_long.error, ValidationError)

    assert _tasks(store) == before
    assert repo.writes == []


@pytest.mark.asyncio
async def test_toggle_emits_completion_events(
    coordinator: MutationCoordinator, store: ListStore, events: RecordingEventSink
) -> None:
    store.set_tasks(EMPTY_LIST_ID, (make_node("a", subtasks=[make_node("b", completed=True)]),))

    await coordinator.toggle_completion(EMPTY_LIST_ID, "a")
    assert events.kinds() == [TaskEvent.TASK_COMPLETED, TaskEvent.TASK_LIST_COMPLETED]
    assert events.events[0] == (TaskEvent.TASK_COMPLETED, EMPTY_LIST_ID, "a")

    # un-completing is silent
    await coordinator.toggle_completion(EMPTY_LIST_ID, "a")
    assert len(events.events) == 2

    # completing one task of a partly done list only emits the task event
    await coordinator.toggle_completion(WORK_LIST_ID, "t2")
    assert events.kinds()[-1] == TaskEvent.TASK_COMPLETED
    assert len(events.events) == 3


@pytest.mark.asyncio
async def test_rename_task_trims_and_empty_name_deletes(coordinator: MutationCoordinator, store: ListStore) -> None:
    await coordinator.rename_task(WORK_LIST_ID, "t2", "  Call the bank  ")
    assert find_by_id(_tasks(store), "t2").name == "Call the bank"

    result = await coordinator.rename_task(WORK_LIST_ID, "t1", "  ")
    assert result.ok is True
    for task_id in ("t1", "s1", "s2"):
        assert find_by_id(_tasks(store), task_id) is None


@pytest.mark.asyncio
async def test_delete_unknown_task_does_not_write(coordinator: MutationCoordinator, repo: FakeTaskListRepo) -> None:
    result = await coordinator.delete_task(WORK_LIST_ID, "ghost")
    assert result.message == "Task not found."
    assert repo.writes == []


@pytest.mark.asyncio
async def test_reorder_nested_and_noop(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    result = await coordinator.reorder(WORK_LIST_ID, "t1", 1, 0)
    assert result.ok is True
    assert [t.id for t in find_by_id(_tasks(store), "t1").subtasks] == ["s2", "s1"]
    assert len(repo.writes) == 1

    same = await coordinator.reorder(WORK_LIST_ID, None, 1, 1)
    assert same.ok is True
    assert len(repo.writes) == 1

    bad = await coordinator.reorder(WORK_LIST_ID, None, 0, 9)
    assert isinstance(bad.error, ValidationError)
    assert len(repo.writes) == 1


@pytest.mark.asyncio
async def test_apply_replaces_whole_forest(coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo) -> None:
    new_forest = (make_node("solo"),)
    result = await coordinator.apply(WORK_LIST_ID, new_forest)
    assert result.ok is True
    assert _tasks(store) == new_forest
    assert repo.lists[WORK_LIST_ID].tasks == new_forest


@pytest.mark.asyncio
async def test_refetch_after_write(store: ListStore, repo: FakeTaskListRepo) -> None:
    coordinator = MutationCoordinator(store, repo, refetch_after_write=True)
    await coordinator.toggle_completion(WORK_LIST_ID, "t2")
    assert repo.fetch_calls == 1
    assert find_by_id(_tasks(store), "t2").completed is True


# ---- list operations ----


@pytest.mark.asyncio
async def test_create_list_shows_pending_list_then_swaps_in_id(
    coordinator: MutationCoordinator, store: ListStore, notifier: RecordingNotifier
) -> None:
    pending = asyncio.create_task(coordinator.create_list("  Groceries "))
    await asyncio.sleep(0)

    shown = [lst for lst in store.lists if lst.name == "Groceries"]
    assert len(shown) == 1
    assert shown[0].id is None
    assert shown[0].is_placeholder

    result = await pending
    assert result.ok is True
    created = store.get(result.list_id)
    assert created is not None and created.name == "Groceries"
    assert all(lst.id is not None for lst in store.lists)
    assert notifier.texts(NoticeLevel.SUCCESS) == ["List added successfully!"]


@pytest.mark.asyncio
async def test_create_list_failure_removes_pending(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo, notifier: RecordingNotifier
) -> None:
    repo.fail_create = True
    before = store.lists

    result = await coordinator.create_list("Groceries")
    assert result.ok is False
    assert store.lists == before
    assert notifier.texts(NoticeLevel.ERROR) == ["Failed to add list: Failed to save list."]


@pytest.mark.asyncio
async def test_create_list_rejects_blank_and_signed_out(coordinator: MutationCoordinator) -> None:
    blank = await coordinator.create_list("  ")
    assert isinstance(blank.error, ValidationError)

    signed_out = MutationCoordinator(ListStore(), FakeTaskListRepo())
    result = await signed_out.create_list("Mine")
    assert isinstance(result.error, InvalidTarget)


@pytest.mark.asyncio
async def test_rename_list_success_and_rollback(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    ok = await coordinator.rename_list(WORK_LIST_ID, "Office")
    assert ok.ok is True
    assert store.get(WORK_LIST_ID).name == "Office"
    assert repo.lists[WORK_LIST_ID].name == "Office"

    repo.fail_rename = True
    failed = await coordinator.rename_list(WORK_LIST_ID, "Home")
    assert failed.ok is False
    assert store.get(WORK_LIST_ID).name == "Office"


@pytest.mark.asyncio
async def test_delete_list_success_and_rollback(
    coordinator: MutationCoordinator, store: ListStore, repo: FakeTaskListRepo
) -> None:
    original = store.get(WORK_LIST_ID)
    repo.fail_delete = True

    failed = await coordinator.delete_list(WORK_LIST_ID)
    assert failed.ok is False
    assert store.lists[0] == original

    repo.fail_delete = False
    ok = await coordinator.delete_list(WORK_LIST_ID)
    assert ok.ok is True
    assert store.get(WORK_LIST_ID) is None
    assert WORK_LIST_ID not in repo.lists


@pytest.mark.asyncio
async def test_task_write_after_list_rename_still_confirms(
    coordinator: MutationCoordinator, store: ListStore
) -> None:
    await coordinator.rename_list(WORK_LIST_ID, "Office")
    await coordinator.toggle_completion(WORK_LIST_ID, "t2")
    lst = store.get(WORK_LIST_ID)
    assert lst.name == "Office"
    assert find_by_id(lst.tasks, "t2").completed is True
    assert store.is_fresh(WORK_LIST_ID)
