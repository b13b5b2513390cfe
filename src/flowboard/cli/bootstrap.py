# src/flowboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires concrete implementations into AppState (repo/LLM/store/coordinator/decomposer).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import EventSink, LLMClient, Notifier, TaskListRepo
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..storage.memory_repo import InMemoryTaskListRepo
from ..storage.mongo_repo import MongoTaskListRepo
from ..tasks.coordinator import MutationCoordinator
from ..tasks.decomposer import LLMSubtaskGenerator, TaskDecomposer
from ..tasks.list_store import ListStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    data_dir = getattr(settings, "data_dir", None)
    if data_dir is not None:
        data_dir.mkdir(parents=True, exist_ok=True)


def _build_repo(settings, user_id: str | None) -> TaskListRepo:
    if getattr(settings, "mongodb_uri", ""):
        try:
            return MongoTaskListRepo.from_settings(settings, owner_id=user_id)
        except Exception:
            logger.exception("MongoDB repo init failed; falling back to in-memory storage")
    logger.info("Using in-memory task storage (data is not kept after exit).")
    return InMemoryTaskListRepo()


def _build_llm(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except Exception as e:
        # Fallback for demos / local runs without external services.
        logger.info("LLM not configured (%s); using offline client.", e)
        return OfflineLLMClient()


def create_initial_state(
    *,
    settings=None,
    repo: TaskListRepo | None = None,
    llm: LLMClient | None = None,
    notifier: Notifier | None = None,
    events: EventSink | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and collaborators) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    user_id = getattr(settings, "user_id", None) or None
    repo = repo if repo is not None else _build_repo(settings, user_id)
    llm = llm if llm is not None else _build_llm(settings)

    task_name_max_len = int(getattr(settings, "task_name_max_len", 200))
    store = ListStore(user_id=user_id)
    coordinator = MutationCoordinator(
        store,
        repo,
        notifier=notifier,
        events=events,
        task_name_max_len=task_name_max_len,
        list_name_max_len=int(getattr(settings, "list_name_max_len", 100)),
        refetch_after_write=bool(getattr(settings, "refetch_after_write", False)),
    )
    decomposer = TaskDecomposer(
        coordinator,
        LLMSubtaskGenerator(llm),
        notifier=notifier,
        description_max_len=int(getattr(settings, "ai_description_max_len", task_name_max_len)),
        name_max_len=task_name_max_len,
    )

    state = AppState(
        settings=settings,
        repo=repo,
        llm=llm,
        store=store,
        coordinator=coordinator,
        decomposer=decomposer,
    )
    if hasattr(repo, "close"):
        state.closers.append(repo)
    return state


async def load_lists(state: AppState) -> bool:
    """Initial fetch for a signed-in session. Returns False (and logs) on failure."""
    try:
        await state.store.load(state.repo)
    except Exception:
        logger.exception("Failed to load task lists.")
        return False
    if state.active_list_id is None and state.store.lists:
        state.active_list_id = state.store.lists[0].id
    return True
