from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Optional

from ..model import DependencyEdge, Task
from ..positions import PositionShift


@dataclass
class TaskDependencies:
    depends_on: list[DependencyEdge] = field(default_factory=list)
    dependents: list[DependencyEdge] = field(default_factory=list)


@dataclass
class GraphSnapshot:
    tasks: list[Task] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)


class GraphUnitOfWork(ABC):
    """Reads and writes that commit together when the transaction exits."""

    @abstractmethod
    def list_tasks(self, *, board_id: Optional[str] = None, column_id: Optional[str] = None) -> list[Task]:
        raise NotImplementedError

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    def save_task(self, task: Task) -> Task:
        raise NotImplementedError

    @abstractmethod
    def list_edges(self, *, board_id: Optional[str] = None) -> list[DependencyEdge]:
        raise NotImplementedError

    @abstractmethod
    def list_dependencies(self, task_id: str) -> TaskDependencies:
        raise NotImplementedError

    @abstractmethod
    def get_edge(self, task_id: str, depends_on_task_id: str) -> Optional[DependencyEdge]:
        raise NotImplementedError

    @abstractmethod
    def persist_edge(self, edge: DependencyEdge) -> DependencyEdge:
        raise NotImplementedError

    @abstractmethod
    def delete_edge(self, task_id: str, depends_on_task_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def shift_positions(self, shift: PositionShift) -> int:
        raise NotImplementedError

    @abstractmethod
    def set_position(self, task_id: str, column_id: str, position: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def update_task_progress(self, task_id: str, progress: int) -> None:
        raise NotImplementedError


class GraphRepository(ABC):
    """Storage collaborator for the engine.

    Mutations happen inside :meth:`transaction`, which must serialize with
    every other transaction touching the same board; an exception raised
    inside the block discards all writes made in it.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager[GraphUnitOfWork]:
        raise NotImplementedError

    @abstractmethod
    def read_snapshot(self, *, board_id: Optional[str] = None) -> GraphSnapshot:
        raise NotImplementedError
