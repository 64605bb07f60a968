"""Task graph service: dependency, position and progress use cases.

This is the entry point the mutation/query layer calls.  It reads records
from a :class:`GraphRepository`, runs the graph analyzers, the position
sequencer or the progress aggregator, and writes the resulting mutations back
inside one repository transaction.  The service itself holds no task state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from .config import EngineConfig
from .errors import (
    CircularDependencyError,
    CircularParentError,
    DependencyNotFoundError,
    SelfDependencyError,
    TaskGraphError,
    TaskNotFoundError,
)
from .graph.builder import DependencyGraph, build_graph
from .graph.critical_path import CriticalPathResult, execution_batches, find_critical_path
from .graph.cycles import find_cycle, find_path
from .graph.impact import (
    ImpactResult,
    analyze_impact,
    dependency_depth,
    earliest_start_dates,
    parallel_groups,
)
from .graph.visualization import render_graph
from .model import DependencyEdge, DependencyType, Task, TaskStatus, WeightConfig, WeightType
from .positions import ColumnValidation, PositionPlan, PositionSequencer
from .progress import (
    ProgressAggregator,
    ProgressNode,
    ProgressResult,
    SubtaskHierarchy,
    would_create_parent_cycle,
)
from .storage.interfaces import GraphRepository, GraphUnitOfWork, TaskDependencies


@dataclass
class DependencyOperation:
    task_id: str
    depends_on_task_id: str
    action: str = "add"  # "add" or "remove"
    dependency_type: str = DependencyType.BLOCKS.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "depends_on_task_id": self.depends_on_task_id,
            "action": self.action,
        }


@dataclass
class BulkDependencyResult:
    successful: list[dict[str, Any]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)


class TaskGraphService:
    """Dependency, ordering and progress operations over a repository.

    Parameters
    ----------
    repository:
        Storage collaborator supplying task/edge records and transactions.
    config:
        Policy settings; defaults apply when omitted.
    """

    def __init__(self, repository: GraphRepository, config: Optional[EngineConfig] = None) -> None:
        self.repository = repository
        self.config = config or EngineConfig()
        self.progress = ProgressAggregator(self.config.progress)

    @property
    def _max_iterations(self) -> int:
        return self.config.traversal.max_iterations

    # ------------------------------------------------------------------
    # Dependency management
    # ------------------------------------------------------------------

    def add_dependency(
        self,
        task_id: str,
        depends_on_task_id: str,
        dependency_type: str = DependencyType.BLOCKS.value,
        metadata: Optional[dict[str, Any]] = None,
    ) -> DependencyEdge:
        """Record that ``task_id`` depends on ``depends_on_task_id``.

        Re-adding an existing edge returns it unchanged.

        Raises:
            SelfDependencyError: both ids are the same.
            TaskNotFoundError: either task does not exist.
            CircularDependencyError: the edge would close a cycle.
        """
        if task_id == depends_on_task_id:
            raise SelfDependencyError(task_id)

        with self.repository.transaction() as uow:
            for tid in (task_id, depends_on_task_id):
                if uow.get_task(tid) is None:
                    raise TaskNotFoundError(tid)

            existing = uow.get_edge(task_id, depends_on_task_id)
            if existing is not None:
                logger.debug("Dependency {} -> {} already exists", task_id, depends_on_task_id)
                return existing

            path = find_path(
                uow.list_edges(), depends_on_task_id, task_id, max_iterations=self._max_iterations
            )
            if path is not None:
                raise CircularDependencyError(task_id, depends_on_task_id, cycle=[task_id] + path)

            edge = uow.persist_edge(DependencyEdge(
                task_id=task_id,
                depends_on_task_id=depends_on_task_id,
                dependency_type=DependencyType(dependency_type),
                metadata=dict(metadata or {}),
            ))

        logger.info("Added dependency {} -> {} ({})", task_id, depends_on_task_id, edge.dependency_type.value)
        return edge

    def remove_dependency(self, task_id: str, depends_on_task_id: str) -> None:
        with self.repository.transaction() as uow:
            if not uow.delete_edge(task_id, depends_on_task_id):
                raise DependencyNotFoundError(task_id, depends_on_task_id)
        logger.info("Removed dependency {} -> {}", task_id, depends_on_task_id)

    def bulk_dependency_operations(self, operations: Iterable[DependencyOperation]) -> BulkDependencyResult:
        """Apply each add/remove in its own transaction, collecting failures."""
        result = BulkDependencyResult()
        for op in operations:
            try:
                if op.action == "add":
                    self.add_dependency(op.task_id, op.depends_on_task_id, op.dependency_type)
                elif op.action == "remove":
                    self.remove_dependency(op.task_id, op.depends_on_task_id)
                else:
                    raise ValueError(f"Unknown dependency action '{op.action}'")
            except TaskGraphError as exc:
                result.failed.append({**op.to_dict(), "code": exc.code, "error": exc.message})
                continue
            except ValueError as exc:
                result.failed.append({**op.to_dict(), "code": "INVALID_OPERATION", "error": str(exc)})
                continue
            result.successful.append(op.to_dict())

        logger.info(
            "Bulk dependency operations completed: {} succeeded, {} failed",
            len(result.successful), len(result.failed),
        )
        return result

    def get_dependencies(self, task_id: str) -> TaskDependencies:
        with self.repository.transaction() as uow:
            if uow.get_task(task_id) is None:
                raise TaskNotFoundError(task_id)
            return uow.list_dependencies(task_id)

    def find_cycle(self, board_id: Optional[str] = None) -> Optional[list[str]]:
        """Full-graph acyclicity check; returns one cycle or None."""
        snapshot = self.repository.read_snapshot(board_id=board_id)
        return find_cycle(snapshot.edges, max_iterations=self._max_iterations)

    # ------------------------------------------------------------------
    # Graph analyses (read-only snapshot)
    # ------------------------------------------------------------------

    def get_dependency_graph(self, board_id: Optional[str] = None) -> DependencyGraph:
        snapshot = self.repository.read_snapshot(board_id=board_id)
        return build_graph(snapshot.tasks, snapshot.edges)

    def find_critical_path(
        self,
        board_id: Optional[str] = None,
        durations: Optional[Mapping[str, float]] = None,
    ) -> CriticalPathResult:
        return find_critical_path(
            self.get_dependency_graph(board_id), durations, policy=self.config.critical_path
        )

    def analyze_impact(self, task_id: str, *, today: Optional[date] = None) -> ImpactResult:
        return analyze_impact(
            self.get_dependency_graph(),
            task_id,
            today=today,
            policy=self.config.impact,
            max_iterations=self._max_iterations,
        )

    def get_parallel_executable_tasks(self, task_ids: Iterable[str]) -> list[list[str]]:
        return parallel_groups(self.get_dependency_graph(), task_ids, max_iterations=self._max_iterations)

    def dependency_depth(self, task_id: str) -> int:
        return dependency_depth(self.get_dependency_graph(), task_id, max_iterations=self._max_iterations)

    def get_execution_order(self, board_id: Optional[str] = None) -> list[list[str]]:
        return execution_batches(self.get_dependency_graph(board_id))

    def earliest_start_dates(self, project_start: date, board_id: Optional[str] = None) -> dict[str, date]:
        return earliest_start_dates(
            self.get_dependency_graph(board_id),
            project_start,
            policy=self.config.impact,
            fallback_hours=self.config.critical_path.fallback_duration_hours,
            max_iterations=self._max_iterations,
        )

    def visualize(self, board_id: Optional[str] = None, fmt: str = "tree", *, show_details: bool = False) -> str:
        return render_graph(self.get_dependency_graph(board_id), fmt, show_details=show_details)

    # ------------------------------------------------------------------
    # Column positions
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_plan(uow: GraphUnitOfWork, plan: PositionPlan) -> None:
        for shift in plan.shifts:
            uow.shift_positions(shift)
        if plan.task_id is not None:
            uow.set_position(plan.task_id, plan.column_id, plan.position)

    @staticmethod
    def _require_task(uow: GraphUnitOfWork, task_id: str) -> Task:
        task = uow.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    @staticmethod
    def _restore_task(uow: GraphUnitOfWork, task: Task, column_id: str, position: Optional[int]) -> Task:
        sequencer = PositionSequencer(uow.list_tasks(column_id=column_id))
        plan = sequencer.insert(column_id, position, task_id=task.id)
        for shift in plan.shifts:
            uow.shift_positions(shift)
        task.column_id, task.position, task.archived = column_id, plan.position, False
        if task.status == TaskStatus.ARCHIVED:
            task.transition(TaskStatus.TODO)
        uow.save_task(task)
        return task

    def next_position(self, column_id: str) -> int:
        with self.repository.transaction() as uow:
            return PositionSequencer(uow.list_tasks(column_id=column_id)).next_position(column_id)

    def column_order(self, column_id: str) -> list[str]:
        snapshot = self.repository.read_snapshot()
        return PositionSequencer(snapshot.tasks).column_order(column_id)

    def place_task(self, task: Task, position: Optional[int] = None) -> Task:
        """Insert *task* into ``task.column_id`` at *position* (default: end)."""
        with self.repository.transaction() as uow:
            sequencer = PositionSequencer(uow.list_tasks(column_id=task.column_id))
            existing = uow.get_task(task.id)
            if existing is not None and existing.column_id != task.column_id and existing.occupies_position:
                raise ValueError(f"Task {task.id} is placed in column {existing.column_id}; use move_task")
            plan = sequencer.insert(task.column_id, position, task_id=task.id)
            for shift in plan.shifts:
                uow.shift_positions(shift)
            task.position = plan.position
            task.archived = False
            uow.save_task(task)
        logger.info("Placed task {} in column {} at position {}", task.id, task.column_id, task.position)
        return task

    def remove_task_from_column(self, task_id: str) -> Task:
        """Archive *task_id* and close the gap it leaves in its column."""
        with self.repository.transaction() as uow:
            task = self._require_task(uow, task_id)
            if not task.occupies_position:
                return task
            sequencer = PositionSequencer(uow.list_tasks(column_id=task.column_id))
            plan = sequencer.remove(task.column_id, task.position, task_id)
            for shift in plan.shifts:
                uow.shift_positions(shift)
            task.archived = True
            uow.save_task(task)
        logger.info("Removed task {} from column {}", task_id, task.column_id)
        return task

    def move_task(self, task_id: str, column_id: Optional[str] = None, position: Optional[int] = None) -> Task:
        """Move within the current column or across to *column_id*.

        An archived task holds no slot, so moving it re-places it: it is
        un-archived and inserted into the target column without vacating
        anything in the column it was archived from.
        """
        with self.repository.transaction() as uow:
            task = self._require_task(uow, task_id)
            if not task.occupies_position:
                restored = self._restore_task(uow, task, column_id or task.column_id, position)
                logger.info("Restored archived task {} to {}:{}", task_id, restored.column_id, restored.position)
                return restored
            old_column, old_position = task.column_id, task.position
            target_column = column_id or old_column
            if target_column == old_column and (position is None or position == old_position):
                return task
            snapshot = uow.list_tasks(column_id=old_column)
            if target_column != old_column:
                snapshot += uow.list_tasks(column_id=target_column)
            sequencer = PositionSequencer(snapshot)
            if target_column == old_column:
                plan = sequencer.move(old_column, old_position, position, task_id)  # type: ignore[arg-type]
            else:
                plan = sequencer.move_across_columns(task_id, old_column, target_column, old_position, position)
            self._apply_plan(uow, plan)
            moved = self._require_task(uow, task_id)
        logger.info(
            "Moved task {} from {}:{} to {}:{}",
            task_id, old_column, old_position, moved.column_id, moved.position,
        )
        return moved

    def normalize_column(self, column_id: str) -> list[tuple[str, int]]:
        with self.repository.transaction() as uow:
            sequencer = PositionSequencer(uow.list_tasks(column_id=column_id))
            changes = sequencer.normalize(column_id)
            for tid, new_position in changes:
                uow.set_position(tid, column_id, new_position)
        return changes

    def validate_column(self, column_id: str) -> ColumnValidation:
        snapshot = self.repository.read_snapshot()
        return PositionSequencer(snapshot.tasks).validate(column_id)

    # ------------------------------------------------------------------
    # Progress and the subtask tree
    # ------------------------------------------------------------------

    def calculate_progress(self, task_id: str, weights: Optional[Mapping[str, float]] = None) -> ProgressResult:
        snapshot = self.repository.read_snapshot()
        by_id = {t.id: t for t in snapshot.tasks}
        if task_id not in by_id:
            raise TaskNotFoundError(task_id)
        subtasks = [t for t in snapshot.tasks if t.parent_task_id == task_id]
        return self.progress.calculate_progress(task_id, subtasks, weights, parent=by_id[task_id])

    def calculate_hierarchical_progress(
        self,
        task_id: str,
        weights: Optional[Mapping[str, float]] = None,
        *,
        max_depth: Optional[int] = None,
    ) -> ProgressNode:
        snapshot = self.repository.read_snapshot()
        return self.progress.calculate_hierarchical(task_id, snapshot.tasks, weights, max_depth=max_depth)

    def subtask_hierarchy(self, task_id: str, *, max_depth: Optional[int] = None) -> SubtaskHierarchy:
        snapshot = self.repository.read_snapshot()
        return self.progress.subtask_hierarchy(task_id, snapshot.tasks, max_depth=max_depth)

    def set_subtask_weight(self, task_id: str, factor: float) -> Task:
        """Store a custom weight on *task_id*.

        Raises:
            InvalidWeightError: *factor* is outside the configured bounds.
        """
        factor = self.progress.validate_weight(factor)
        with self.repository.transaction() as uow:
            task = self._require_task(uow, task_id)
            task.weight_config = WeightConfig(factor=factor, type=WeightType.CUSTOM)
            uow.save_task(task)
        logger.info("Set weight of {} to {}", task_id, factor)
        return task

    def set_parent(self, task_id: str, parent_task_id: Optional[str]) -> Task:
        """Attach *task_id* under *parent_task_id* (or detach with None).

        Raises:
            CircularParentError: the assignment would loop the subtask tree.
        """
        with self.repository.transaction() as uow:
            task = self._require_task(uow, task_id)
            if parent_task_id is not None:
                self._require_task(uow, parent_task_id)
                if would_create_parent_cycle(uow.list_tasks(), task_id, parent_task_id):
                    raise CircularParentError(task_id, parent_task_id)
            task.parent_task_id = parent_task_id
            uow.save_task(task)
        return task

    def update_parent_progress(self, subtask_id: str) -> list[ProgressResult]:
        """Recompute progress up the ancestor chain after *subtask_id* changed.

        Each ancestor's progress is persisted; an ancestor whose subtasks are
        all done is marked done unless its ``auto_complete`` flag is off.
        Returns one result per ancestor visited, nearest first.
        """
        results: list[ProgressResult] = []
        with self.repository.transaction() as uow:
            current = self._require_task(uow, subtask_id)
            visited: set[str] = {current.id}
            all_tasks = uow.list_tasks()
            while current.parent_task_id and current.parent_task_id not in visited:
                parent = uow.get_task(current.parent_task_id)
                if parent is None:
                    break
                visited.add(parent.id)
                subtasks = [t for t in all_tasks if t.parent_task_id == parent.id]
                result = self.progress.calculate_progress(parent.id, subtasks, parent=parent)
                results.append(result)
                if result.derived:
                    uow.update_task_progress(parent.id, result.progress)
                if result.auto_complete_eligible and parent.auto_complete and not parent.is_done:
                    parent.transition(TaskStatus.DONE)
                    uow.save_task(parent)
                    logger.info("Auto-completed parent task {} after {} changed", parent.id, subtask_id)
                current = parent
        return results
