# src/flowboard/tasks/list_store.py

"""
In-memory source of truth for the active session's task lists.

Two population modes:
- signed in: lists are fetched once from the repo (load()) and kept until
  invalidated; the mutation coordinator writes optimistic values here.
- signed out: a fixed placeholder set for preview; it is never mutated
  and never sent to storage.

Listeners are called synchronously on every change, so an optimistic apply
is visible before the caller's next await.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ..core.ports import StoreListener, TaskListRepo
from .errors import InvalidTarget
from .task_models import PLACEHOLDER_PREFIX, Forest, Priority, TaskList, TaskNode, create_new_task
from .tree_ops import sort_siblings

logger = logging.getLogger(__name__)

PREVIEW_TASK_LIMIT = 5


def placeholder_task_lists() -> tuple[TaskList, ...]:
    """Read-only onboarding content shown to signed-out visitors."""
    with_sub = create_new_task("Tasks can have subtasks").with_subtasks(
        [create_new_task("Subtasks are indented under their parent")]
    )
    return (
        TaskList(
            id=f"{PLACEHOLDER_PREFIX}1",
            name="Getting Started",
            tasks=(
                create_new_task("Use /newlist to add a list"),
                create_new_task("Use /edit to rename a task"),
                create_new_task("Use /prio to set priority", priority=Priority.LOW),
                with_sub,
                create_new_task("Check me off when done!"),
            ),
        ),
    )


class ListStore:
    def __init__(self, *, user_id: str | None = None) -> None:
        self._user_id = user_id or None
        self._lists: list[TaskList] = []
        self._fresh: set[str] = set()
        self._loaded = False
        self._listeners: list[StoreListener] = []
        if self._user_id is None:
            self._lists = list(placeholder_task_lists())
            self._loaded = True

    # ---- session ----

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self, repo: TaskListRepo, *, force: bool = False) -> tuple[TaskList, ...]:
        """
        Fetch the user's lists once. Later calls return the cached lists
        unless force=True or something was invalidated.

        Repo errors propagate to the caller (nothing is replaced on failure).
        """
        if self._user_id is None:
            return self.lists
        if self._loaded and not force and self._all_fresh():
            return self.lists

        fetched = await repo.fetch_lists(self._user_id)
        self._lists = list(fetched)
        self._fresh = {lst.id for lst in self._lists if lst.id}
        self._loaded = True
        logger.info("ListStore loaded user=%s lists=%d", self._user_id, len(self._lists))
        self._notify()
        return self.lists

    def _all_fresh(self) -> bool:
        return all(lst.id in self._fresh for lst in self._lists if lst.id)

    def mark_fresh(self, list_id: str) -> None:
        self._fresh.add(list_id)

    def invalidate(self, list_id: str | None = None) -> None:
        if list_id is None:
            self._fresh.clear()
            self._loaded = self._user_id is None
        else:
            self._fresh.discard(list_id)

    def is_fresh(self, list_id: str) -> bool:
        return list_id in self._fresh

    # ---- reads ----

    @property
    def lists(self) -> tuple[TaskList, ...]:
        return tuple(self._lists)

    def get(self, list_id: str | None) -> TaskList | None:
        if not list_id:
            return None
        for lst in self._lists:
            if lst.id == list_id:
                return lst
        return None

    def require_mutable(self, list_id: str | None) -> TaskList:
        """Return the list or raise InvalidTarget for unknown/placeholder lists."""
        lst = self.get(list_id)
        if lst is None:
            raise InvalidTarget(f"unknown list: {list_id}", user_message="List not found.")
        if lst.is_placeholder or not self.is_authenticated:
            raise InvalidTarget(
                f"placeholder list is read-only: {list_id}",
                user_message="Sign in to edit your task lists.",
            )
        return lst

    def index_of(self, list_id: str) -> int:
        for i, lst in enumerate(self._lists):
            if lst.id == list_id:
                return i
        return -1

    def preview_tasks(self, limit: int = PREVIEW_TASK_LIMIT) -> tuple[TaskList | None, Forest]:
        """First real list (or the first placeholder) and its top `limit` sorted tasks."""
        display = next((lst for lst in self._lists if not lst.is_placeholder), None)
        if display is None and self._lists:
            display = self._lists[0]
        if display is None:
            return None, ()
        return display, sort_siblings(display.tasks)[:limit]

    # ---- writes (coordinator only) ----

    def set_tasks(self, list_id: str, tasks: Sequence[TaskNode]) -> TaskList:
        idx = self._require_index(list_id)
        updated = self._lists[idx].with_tasks(tasks)
        self._lists[idx] = updated
        self._notify()
        return updated

    def replace_list(self, lst: TaskList) -> None:
        idx = self._require_index(lst.id)
        self._lists[idx] = lst
        self._notify()

    def append_list(self, lst: TaskList) -> None:
        self._lists.append(lst)
        if lst.id:
            self._fresh.add(lst.id)
        self._notify()

    def remove_list(self, list_id: str) -> tuple[int, TaskList]:
        idx = self._require_index(list_id)
        removed = self._lists.pop(idx)
        self._fresh.discard(list_id)
        self._notify()
        return idx, removed

    def insert_list(self, index: int, lst: TaskList) -> None:
        index = max(0, min(index, len(self._lists)))
        self._lists.insert(index, lst)
        self._notify()

    def swap_list(self, old: TaskList, new: TaskList) -> None:
        """Replace a list by identity (used for lists that have no id yet)."""
        for i, lst in enumerate(self._lists):
            if lst is old:
                self._lists[i] = new
                self._notify()
                return
        self.append_list(new)

    def discard_list(self, lst: TaskList) -> None:
        before = len(self._lists)
        self._lists = [x for x in self._lists if x is not lst]
        if len(self._lists) != before:
            self._notify()

    def _require_index(self, list_id: str | None) -> int:
        idx = self.index_of(list_id) if list_id else -1
        if idx < 0:
            raise InvalidTarget(f"unknown list: {list_id}", user_message="List not found.")
        return idx

    # ---- listeners ----

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        snapshot = self.lists
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("ListStore listener failed")
