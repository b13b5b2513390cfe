# src/flowboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..tasks.coordinator import MutationCoordinator
from ..tasks.decomposer import TaskDecomposer
from ..tasks.list_store import ListStore
from .ports import LLMClient, TaskListRepo


@dataclass
class AppState:
    """
    Everything one session needs, built once by the composition root
    (cli/bootstrap.py) and passed by reference to the connectors.
    """

    settings: Any
    repo: TaskListRepo
    llm: LLMClient
    store: ListStore
    coordinator: MutationCoordinator
    decomposer: TaskDecomposer

    # list currently shown in the console (None -> first list)
    active_list_id: str | None = None
    # resources to close on shutdown
    closers: list[Any] = field(default_factory=list)

    @property
    def signed_in(self) -> bool:
        return self.store.is_authenticated
