# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from flowboard.cli.bootstrap import create_initial_state
from flowboard.core.state import AppState
from flowboard.tasks.coordinator import MutationCoordinator
from flowboard.tasks.list_store import ListStore
from flowboard.tasks.task_models import TaskList

from .fakes import (
    EMPTY_LIST_ID,
    USER_ID,
    WORK_LIST_ID,
    FakeLLMClient,
    FakeTaskListRepo,
    RecordingEventSink,
    RecordingNotifier,
    sample_forest,
)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="flowboard-test",
        data_dir=tmp_path / "data",
        user_id=USER_ID,
        mongodb_uri="",
        llm_models=["test/model"],
        task_name_max_len=200,
        list_name_max_len=100,
        ai_description_max_len=200,
        refetch_after_write=False,
    )


@pytest.fixture()
def seeded_lists() -> list[TaskList]:
    return [
        TaskList(id=WORK_LIST_ID, name="Work", tasks=sample_forest(), user_id=USER_ID),
        TaskList(id=EMPTY_LIST_ID, name="Empty", tasks=(), user_id=USER_ID),
    ]


@pytest.fixture()
def repo(seeded_lists: list[TaskList]) -> FakeTaskListRepo:
    return FakeTaskListRepo(seeded_lists)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture()
def store(seeded_lists: list[TaskList]) -> ListStore:
    """Signed-in store already holding the seeded lists (as if loaded)."""
    s = ListStore(user_id=USER_ID)
    for lst in seeded_lists:
        s.append_list(lst)
    return s


@pytest.fixture()
def coordinator(
    store: ListStore,
    repo: FakeTaskListRepo,
    notifier: RecordingNotifier,
    events: RecordingEventSink,
) -> MutationCoordinator:
    return MutationCoordinator(store, repo, notifier=notifier, events=events)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    repo: FakeTaskListRepo,
    seeded_lists: list[TaskList],
    notifier: RecordingNotifier,
    events: RecordingEventSink,
) -> AppState:
    """AppState wired with deterministic fakes, signed in, lists already in the store."""
    st = create_initial_state(
        settings=settings,
        repo=repo,
        llm=FakeLLMClient(),
        notifier=notifier,
        events=events,
    )
    for lst in seeded_lists:
        st.store.append_list(lst)
    st.active_list_id = WORK_LIST_ID
    return st
