# src/flowboard/tasks/coordinator.py

from __future__ import annotations

"""
Mutation coordinator.

Every tree edit goes through one protocol:
- validate and compute the new forest from the store's current value
- snapshot the list's forest, then optimistically write the new one into the
  store (listeners fire synchronously, before any await)
- send a whole-tree replace to the repo
- success: mark the list fresh
  failure: restore this mutation's own snapshot and notify the user

The coordinator is the only component that writes to the repo. Nothing here
raises TaskTreeError to callers; every entry point returns a MutationResult.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from ..core.ports import EventSink, Notice, NoticeLevel, Notifier, NullEventSink, NullNotifier, TaskEvent, TaskListRepo
from .errors import InvalidTarget, PersistenceFailure, TaskTreeError
from .list_store import ListStore
from .task_models import Forest, TaskList, TaskNode, create_new_task
from .tree_ops import (
    are_all_complete,
    find_and_delete,
    find_and_update,
    find_by_id,
    reorder,
    validate_name,
    validate_priority,
)

logger = logging.getLogger(__name__)

DEFAULT_TASK_NAME_MAX_LEN = 200
DEFAULT_LIST_NAME_MAX_LEN = 100


def _as_persistence_failure(err: Exception) -> PersistenceFailure:
    if isinstance(err, PersistenceFailure):
        return err
    return PersistenceFailure(str(err) or err.__class__.__name__)


@dataclass(slots=True, frozen=True)
class MutationResult:
    ok: bool
    error: TaskTreeError | None = None
    warning: str | None = None
    list_id: str | None = None
    task_id: str | None = None

    @property
    def message(self) -> str | None:
        if self.error is not None:
            return self.error.user_message
        return self.warning


class MutationCoordinator:
    def __init__(
        self,
        store: ListStore,
        repo: TaskListRepo,
        *,
        notifier: Notifier | None = None,
        events: EventSink | None = None,
        task_name_max_len: int = DEFAULT_TASK_NAME_MAX_LEN,
        list_name_max_len: int = DEFAULT_LIST_NAME_MAX_LEN,
        refetch_after_write: bool = False,
    ) -> None:
        self._store = store
        self._repo = repo
        self._notifier: Notifier = notifier or NullNotifier()
        self._events: EventSink = events or NullEventSink()
        self._task_name_max_len = int(task_name_max_len)
        self._list_name_max_len = int(list_name_max_len)
        self._refetch_after_write = bool(refetch_after_write)

        # list_id -> number of writes awaiting the repo
        self._inflight: dict[str, int] = {}
        # list_id -> generation of the most recently issued write
        self._latest: dict[str, int] = {}
        # list_id -> newest generation the repo has accepted
        self._confirmed: dict[str, int] = {}
        self._gen = 0

    @property
    def store(self) -> ListStore:
        return self._store

    def is_pending(self, list_id: str) -> bool:
        return self._inflight.get(list_id, 0) > 0

    # ---- core protocol ----

    async def apply(self, list_id: str, new_forest: Sequence[TaskNode], *, action: str = "update") -> MutationResult:
        """Replace a list's whole forest: optimistic apply, persist, rollback on failure."""
        try:
            lst = self._store.require_mutable(list_id)
        except InvalidTarget as e:
            return self._reject(e, list_id=list_id)
        return await self._commit(lst, tuple(new_forest), action=action)

    async def _commit(
        self,
        lst: TaskList,
        new_forest: Forest,
        *,
        action: str,
        task_id: str | None = None,
        warning: str | None = None,
        on_applied: Callable[[], None] | None = None,
    ) -> MutationResult:
        list_id = lst.id
        if list_id is None:
            return self._reject(
                InvalidTarget("list has no id yet", user_message="This list is still being saved."),
            )

        # The snapshot must be taken right before our own optimistic write.
        snapshot = lst.tasks
        self._store.set_tasks(list_id, new_forest)
        gen = self._begin(list_id)
        logger.debug("Optimistic %s list=%s gen=%s task=%s", action, list_id, gen, task_id)

        if on_applied is not None:
            try:
                on_applied()
            except Exception:
                logger.exception("post-apply hook failed list=%s action=%s", list_id, action)

        try:
            await self._repo.replace_list_tasks(list_id, new_forest)
        except Exception as e:
            failure = _as_persistence_failure(e)
            self._rollback_tasks(list_id, snapshot, gen=gen, action=action)
            self._notify(NoticeLevel.ERROR, f"Failed to update list: {failure.user_message}")
            return MutationResult(ok=False, error=failure, list_id=list_id, task_id=task_id)
        else:
            self._confirm(list_id, new_forest, gen=gen, action=action)
        finally:
            self._end(list_id)

        await self._maybe_refetch(list_id)

        if warning:
            self._notify(NoticeLevel.WARNING, warning)
        return MutationResult(ok=True, warning=warning, list_id=list_id, task_id=task_id)

    def _begin(self, list_id: str) -> int:
        self._gen += 1
        self._latest[list_id] = self._gen
        self._track(list_id)
        return self._gen

    def _track(self, list_id: str) -> None:
        self._inflight[list_id] = self._inflight.get(list_id, 0) + 1

    def _end(self, list_id: str) -> None:
        n = self._inflight.get(list_id, 0) - 1
        if n <= 0:
            self._inflight.pop(list_id, None)
        else:
            self._inflight[list_id] = n

    def _confirm(self, list_id: str, written: Forest, *, gen: int, action: str) -> None:
        if gen > self._confirmed.get(list_id, 0):
            self._confirmed[list_id] = gen
        current = self._store.get(list_id)
        if current is None:
            logger.info("Write confirmed for a list that is gone list=%s action=%s", list_id, action)
            return

        if self._latest.get(list_id) == gen:
            # Last write wins on the server. If an older write's rollback
            # replaced our optimistic value meanwhile, put it back.
            if current.tasks != written:
                logger.info("Re-applying confirmed forest list=%s gen=%s", list_id, gen)
                self._store.set_tasks(list_id, written)
            self._store.mark_fresh(list_id)
        logger.debug("Committed %s list=%s gen=%s", action, list_id, gen)

    def _rollback_tasks(self, list_id: str, snapshot: Forest, *, gen: int, action: str) -> None:
        if self._confirmed.get(list_id, 0) > gen:
            # A newer forest, built on top of this one, is already on the server.
            logger.warning("Persist failed but superseded, keeping store %s list=%s gen=%s", action, list_id, gen)
            return
        logger.warning("Persist failed, rolling back %s list=%s gen=%s", action, list_id, gen)
        try:
            self._store.set_tasks(list_id, snapshot)
        except InvalidTarget:
            logger.info("Rollback skipped: list=%s no longer in store", list_id)
            return
        # Server state is uncertain until the next successful write or reload.
        self._store.invalidate(list_id)

    async def _maybe_refetch(self, list_id: str) -> None:
        if not self._refetch_after_write or self.is_pending(list_id):
            return
        try:
            await self._store.load(self._repo, force=True)
        except Exception:
            logger.exception("Refetch after write failed list=%s", list_id)

    def _reject(self, err: TaskTreeError, *, list_id: str | None = None, task_id: str | None = None) -> MutationResult:
        logger.info("Rejected mutation list=%s task=%s: %s", list_id, task_id, err)
        self._notify(NoticeLevel.WARNING if isinstance(err, InvalidTarget) else NoticeLevel.ERROR, err.user_message)
        return MutationResult(ok=False, error=err, list_id=list_id, task_id=task_id)

    def _notify(self, level: NoticeLevel, text: str) -> None:
        try:
            self._notifier.notify(Notice(level=level, text=text))
        except Exception:
            logger.exception("Notifier failed")

    # ---- task operations ----

    async def add_task(self, list_id: str, name: str, parent_id: str | None = None) -> MutationResult:
        """Append a new task to the top level, or to parent_id's subtasks."""
        try:
            lst = self._store.require_mutable(list_id)
            clean = validate_name(name, max_len=self._task_name_max_len)
            node = create_new_task(clean)
            new_forest = self._append(lst, node, parent_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id, task_id=parent_id)
        return await self._commit(lst, new_forest, action="add_task", task_id=node.id)

    async def insert_task(self, list_id: str, node: TaskNode, *, warning: str | None = None) -> MutationResult:
        """Append a prebuilt node (with its subtree) to the top level in one write."""
        try:
            lst = self._store.require_mutable(list_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id)
        return await self._commit(
            lst, (*lst.tasks, node), action="insert_task", task_id=node.id, warning=warning
        )

    @staticmethod
    def _append(lst: TaskList, node: TaskNode, parent_id: str | None) -> Forest:
        if parent_id is None:
            return (*lst.tasks, node)
        new_forest, found = find_and_update(
            lst.tasks, parent_id, lambda parent: parent.with_subtasks((*parent.subtasks, node))
        )
        if not found:
            raise InvalidTarget(f"unknown parent task: {parent_id}", user_message="Parent task not found.")
        return new_forest

    async def toggle_completion(self, list_id: str, task_id: str) -> MutationResult:
        try:
            lst = self._store.require_mutable(list_id)
            current = self._require_task(lst, task_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id, task_id=task_id)

        completing = not current.completed
        new_forest, _ = find_and_update(lst.tasks, task_id, lambda t: replace(t, completed=not t.completed))

        def _emit() -> None:
            if not completing:
                return
            self._events.emit(TaskEvent.TASK_COMPLETED, list_id=list_id, task_id=task_id)
            if are_all_complete(new_forest):
                self._events.emit(TaskEvent.TASK_LIST_COMPLETED, list_id=list_id)

        return await self._commit(lst, new_forest, action="toggle", task_id=task_id, on_applied=_emit)

    async def set_priority(self, list_id: str, task_id: str, level: int) -> MutationResult:
        try:
            priority = validate_priority(level)
            lst = self._store.require_mutable(list_id)
            self._require_task(lst, task_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id, task_id=task_id)

        new_forest, _ = find_and_update(lst.tasks, task_id, lambda t: replace(t, priority=priority))
        return await self._commit(lst, new_forest, action="set_priority", task_id=task_id)

    async def rename_task(self, list_id: str, task_id: str, name: str) -> MutationResult:
        """Rename a task; an empty name deletes it."""
        if not (name or "").strip():
            return await self.delete_task(list_id, task_id)
        try:
            clean = validate_name(name, max_len=self._task_name_max_len)
            lst = self._store.require_mutable(list_id)
            self._require_task(lst, task_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id, task_id=task_id)

        new_forest, _ = find_and_update(lst.tasks, task_id, lambda t: replace(t, name=clean))
        return await self._commit(lst, new_forest, action="rename_task", task_id=task_id)

    async def delete_task(self, list_id: str, task_id: str) -> MutationResult:
        try:
            lst = self._store.require_mutable(list_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id, task_id=task_id)

        new_forest, found = find_and_delete(lst.tasks, task_id)
        if not found:
            return self._reject(InvalidTarget(f"unknown task: {task_id}", user_message="Task not found."),
                                list_id=list_id, task_id=task_id)
        return await self._commit(lst, new_forest, action="delete_task", task_id=task_id)

    async def reorder(
        self,
        list_id: str,
        parent_id: str | None,
        from_index: int,
        to_index: int,
    ) -> MutationResult:
        """Move one sibling within the top level (parent_id None) or within parent_id's subtasks."""
        try:
            lst = self._store.require_mutable(list_id)
            new_forest, found = reorder(lst.tasks, parent_id, from_index, to_index)
            if not found:
                raise InvalidTarget(f"unknown parent task: {parent_id}", user_message="Parent task not found.")
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id, task_id=parent_id)

        if from_index == to_index:
            return MutationResult(ok=True, list_id=list_id, task_id=parent_id)
        return await self._commit(lst, new_forest, action="reorder", task_id=parent_id)

    @staticmethod
    def _require_task(lst: TaskList, task_id: str) -> TaskNode:
        node = find_by_id(lst.tasks, task_id)
        if node is None:
            raise InvalidTarget(f"unknown task: {task_id}", user_message="Task not found.")
        return node

    # ---- list operations ----

    async def create_list(self, name: str) -> MutationResult:
        """
        Create an empty list.

        The list shows up immediately without an id (read-only) and gets its
        id once the repo confirms; on failure it is removed again.
        """
        user_id = self._store.user_id
        try:
            if user_id is None:
                raise InvalidTarget("signed out", user_message="Sign in to create task lists.")
            clean = validate_name(name, max_len=self._list_name_max_len, what="List name")
        except TaskTreeError as e:
            return self._reject(e)

        pending = TaskList(id=None, name=clean, tasks=(), user_id=user_id)
        self._store.append_list(pending)
        try:
            new_id = await self._repo.create_list(user_id, clean)
        except Exception as e:
            failure = _as_persistence_failure(e)
            logger.warning("create_list failed name=%r: %s", clean, failure)
            self._store.discard_list(pending)
            self._notify(NoticeLevel.ERROR, f"Failed to add list: {failure.user_message}")
            return MutationResult(ok=False, error=failure)

        self._store.swap_list(pending, replace(pending, id=new_id))
        self._store.mark_fresh(new_id)
        logger.info("List created id=%s name=%r", new_id, clean)
        self._notify(NoticeLevel.SUCCESS, "List added successfully!")
        return MutationResult(ok=True, list_id=new_id)

    async def rename_list(self, list_id: str, name: str) -> MutationResult:
        try:
            lst = self._store.require_mutable(list_id)
            clean = validate_name(name, max_len=self._list_name_max_len, what="List name")
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id)

        old_name = lst.name
        self._store.replace_list(replace(lst, name=clean))
        self._track(list_id)
        try:
            await self._repo.rename_list(list_id, clean)
        except Exception as e:
            failure = _as_persistence_failure(e)
            logger.warning("rename_list failed list=%s: %s", list_id, failure)
            # Only the name is ours to restore; tasks may have moved on.
            current = self._store.get(list_id)
            if current is not None:
                self._store.replace_list(replace(current, name=old_name))
            self._notify(NoticeLevel.ERROR, f"Failed to update list: {failure.user_message}")
            return MutationResult(ok=False, error=failure, list_id=list_id)
        finally:
            self._end(list_id)
        return MutationResult(ok=True, list_id=list_id)

    async def delete_list(self, list_id: str) -> MutationResult:
        try:
            self._store.require_mutable(list_id)
        except TaskTreeError as e:
            return self._reject(e, list_id=list_id)

        index, removed = self._store.remove_list(list_id)
        self._track(list_id)
        try:
            await self._repo.delete_list(list_id)
        except Exception as e:
            failure = _as_persistence_failure(e)
            logger.warning("delete_list failed list=%s: %s", list_id, failure)
            self._store.insert_list(index, removed)
            self._notify(NoticeLevel.ERROR, f"Failed to delete list: {failure.user_message}")
            return MutationResult(ok=False, error=failure, list_id=list_id)
        finally:
            self._end(list_id)
        logger.info("List deleted id=%s", list_id)
        return MutationResult(ok=True, list_id=list_id)
