"""In-memory graph repository and the unit of work shared by all backends."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from ..model import DependencyEdge, Task
from ..positions import PositionShift, apply_shift
from .interfaces import GraphRepository, GraphSnapshot, GraphUnitOfWork, TaskDependencies


def _copy_task(task: Task) -> Task:
    return Task.from_dict(task.to_dict())


def _copy_edge(edge: DependencyEdge) -> DependencyEdge:
    return DependencyEdge.from_dict(edge.to_dict())


class InMemoryUnitOfWork(GraphUnitOfWork):
    """Unit of work over in-memory lists of tasks and edges.

    Changes are collected here and handed back to the owning repository when
    the ``transaction`` context manager exits cleanly.
    """

    def __init__(self, tasks: list[Task], edges: list[DependencyEdge]) -> None:
        self.tasks = tasks
        self.edges = edges
        self.dirty = False
        self._index: dict[str, int] = {t.id: i for i, t in enumerate(tasks)}

    # -- tasks --------------------------------------------------------------

    def list_tasks(self, *, board_id: Optional[str] = None, column_id: Optional[str] = None) -> list[Task]:
        out: list[Task] = []
        for t in self.tasks:
            if board_id is not None and t.board_id != board_id:
                continue
            if column_id is not None and t.column_id != column_id:
                continue
            out.append(t)
        return out

    def get_task(self, task_id: str) -> Optional[Task]:
        idx = self._index.get(task_id)
        return self.tasks[idx] if idx is not None else None

    def save_task(self, task: Task) -> Task:
        idx = self._index.get(task.id)
        task.touch()
        if idx is None:
            self._index[task.id] = len(self.tasks)
            self.tasks.append(task)
        else:
            self.tasks[idx] = task
        self.dirty = True
        return task

    # -- edges --------------------------------------------------------------

    def list_edges(self, *, board_id: Optional[str] = None) -> list[DependencyEdge]:
        if board_id is None:
            return list(self.edges)
        on_board = {t.id for t in self.tasks if t.board_id == board_id}
        return [e for e in self.edges if e.task_id in on_board and e.depends_on_task_id in on_board]

    def list_dependencies(self, task_id: str) -> TaskDependencies:
        return TaskDependencies(
            depends_on=[e for e in self.edges if e.task_id == task_id],
            dependents=[e for e in self.edges if e.depends_on_task_id == task_id],
        )

    def get_edge(self, task_id: str, depends_on_task_id: str) -> Optional[DependencyEdge]:
        for edge in self.edges:
            if edge.key == (task_id, depends_on_task_id):
                return edge
        return None

    def persist_edge(self, edge: DependencyEdge) -> DependencyEdge:
        existing = self.get_edge(edge.task_id, edge.depends_on_task_id)
        if existing is not None:
            return existing
        self.edges.append(edge)
        self.dirty = True
        return edge

    def delete_edge(self, task_id: str, depends_on_task_id: str) -> bool:
        before = len(self.edges)
        self.edges = [e for e in self.edges if e.key != (task_id, depends_on_task_id)]
        removed = len(self.edges) != before
        self.dirty = self.dirty or removed
        return removed

    # -- positions / progress -----------------------------------------------

    def shift_positions(self, shift: PositionShift) -> int:
        moved = apply_shift(self.tasks, shift)
        if moved:
            self.dirty = True
        return moved

    def set_position(self, task_id: str, column_id: str, position: int) -> None:
        task = self.get_task(task_id)
        if task is None:
            return
        task.column_id = column_id
        task.position = position
        task.touch()
        self.dirty = True

    def update_task_progress(self, task_id: str, progress: int) -> None:
        task = self.get_task(task_id)
        if task is None:
            return
        task.progress = progress
        task.touch()
        self.dirty = True


class InMemoryGraphRepository(GraphRepository):
    """Thread-safe repository holding everything in process memory.

    Each transaction works on copies; they replace the stored state only when
    the block exits without an exception.
    """

    def __init__(self, tasks: Iterable[Task] = (), edges: Iterable[DependencyEdge] = ()) -> None:
        self._lock = threading.RLock()
        self._tasks: list[Task] = [_copy_task(t) for t in tasks]
        self._edges: list[DependencyEdge] = [_copy_edge(e) for e in edges]

    @contextmanager
    def transaction(self) -> Iterator[InMemoryUnitOfWork]:
        with self._lock:
            uow = InMemoryUnitOfWork(
                [_copy_task(t) for t in self._tasks],
                [_copy_edge(e) for e in self._edges],
            )
            yield uow
            if uow.dirty:
                self._tasks = uow.tasks
                self._edges = uow.edges

    def read_snapshot(self, *, board_id: Optional[str] = None) -> GraphSnapshot:
        with self._lock:
            uow = InMemoryUnitOfWork([_copy_task(t) for t in self._tasks], [_copy_edge(e) for e in self._edges])
            return GraphSnapshot(tasks=uow.list_tasks(board_id=board_id), edges=uow.list_edges(board_id=board_id))
