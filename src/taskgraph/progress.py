"""Weighted progress aggregation over the subtask tree.

The subtask tree (``parent_task_id``) is kept apart from the dependency graph:
nothing here looks at depends-on edges.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from .config import ProgressPolicy
from .constants import COMPLETE_PERCENTAGE, STATUS_PROGRESS
from .errors import InvalidWeightError, TaskNotFoundError
from .model import Task, TaskStatus


@dataclass
class SubtaskProgress:
    task_id: str
    title: str
    status: str
    progress: int
    weight: float
    weight_source: str  # "override", "config" or "auto"

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.DONE.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "status": self.status,
            "progress": self.progress,
            "weight": self.weight,
            "weight_source": self.weight_source,
            "is_completed": self.is_completed,
        }


@dataclass
class ProgressResult:
    task_id: str
    progress: int
    breakdown: list[SubtaskProgress] = field(default_factory=list)
    total_weight: float = 0.0
    auto_complete_eligible: bool = False

    @property
    def derived(self) -> bool:
        """False when there were no subtasks and the progress was not computed."""
        return bool(self.breakdown)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "progress": self.progress,
            "breakdown": [b.to_dict() for b in self.breakdown],
            "total_weight": self.total_weight,
            "auto_complete_eligible": self.auto_complete_eligible,
        }


@dataclass
class ProgressNode:
    """One level of a hierarchical progress computation."""

    task_id: str
    progress: int
    weight: float = 1.0
    depth: int = 0
    children: list["ProgressNode"] = field(default_factory=list)
    auto_complete_eligible: bool = False
    truncated: bool = False  # max depth reached or a parent loop was cut

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "progress": self.progress,
            "weight": self.weight,
            "depth": self.depth,
            "children": [c.to_dict() for c in self.children],
            "auto_complete_eligible": self.auto_complete_eligible,
            "truncated": self.truncated,
        }


@dataclass
class SubtaskHierarchy:
    task_id: str
    parent_task_id: Optional[str]
    depth: int
    path: list[str]
    children: list["SubtaskHierarchy"] = field(default_factory=list)

    @property
    def total_descendants(self) -> int:
        return sum(1 + child.total_descendants for child in self.children)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "parent_task_id": self.parent_task_id,
            "depth": self.depth,
            "path": list(self.path),
            "children": [c.to_dict() for c in self.children],
            "total_descendants": self.total_descendants,
        }


def children_index(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """``{parent_id: [children in position order]}``, archived tasks skipped."""
    index: dict[str, list[Task]] = defaultdict(list)
    for task in tasks:
        if task.parent_task_id and task.occupies_position:
            index[task.parent_task_id].append(task)
    for children in index.values():
        children.sort(key=lambda t: (t.position, t.id))
    return index


def would_create_parent_cycle(tasks: Iterable[Task], task_id: str, parent_id: str) -> bool:
    """True if making *parent_id* the parent of *task_id* loops the tree."""
    if task_id == parent_id:
        return True
    parent_of = {t.id: t.parent_task_id for t in tasks}
    seen: set[str] = set()
    current: Optional[str] = parent_id
    while current is not None and current not in seen:
        if current == task_id:
            return True
        seen.add(current)
        current = parent_of.get(current)
    return False


class ProgressAggregator:
    """Compute parent progress from subtasks with custom or derived weights."""

    def __init__(self, policy: Optional[ProgressPolicy] = None) -> None:
        self.policy = policy or ProgressPolicy()

    # -- per-subtask --------------------------------------------------------

    @staticmethod
    def individual_progress(task: Task) -> int:
        if task.progress is not None:
            return int(min(max(task.progress, 0), COMPLETE_PERCENTAGE))
        return STATUS_PROGRESS.get(task.status.value, 0)

    def _clamp(self, weight: float) -> float:
        return min(max(weight, self.policy.min_weight), self.policy.max_weight)

    def validate_weight(self, weight: float) -> float:
        if not self.policy.min_weight <= weight <= self.policy.max_weight:
            raise InvalidWeightError(weight, self.policy.min_weight, self.policy.max_weight)
        return float(weight)

    def auto_weight(self, task: Task) -> float:
        """``min(hours / 8, 3) * (1 + (priority - 1) * 0.2)`` within bounds."""
        if task.estimated_hours is None:
            base = 1.0
        else:
            base = min(task.estimated_hours / self.policy.hours_per_weight_unit, self.policy.max_hours_factor)
        multiplier = 1 + (task.priority - 1) * self.policy.priority_step
        return round(self._clamp(base * multiplier), 4)

    def resolve_weight(self, task: Task, overrides: Optional[Mapping[str, float]] = None) -> tuple[float, str]:
        if overrides and task.id in overrides:
            return self.validate_weight(overrides[task.id]), "override"
        if task.weight_config is not None:
            return self._clamp(task.weight_config.factor), "config"
        return self.auto_weight(task), "auto"

    # -- aggregation --------------------------------------------------------

    def calculate_progress(
        self,
        task_id: str,
        subtasks: Iterable[Task],
        weights: Optional[Mapping[str, float]] = None,
        *,
        parent: Optional[Task] = None,
    ) -> ProgressResult:
        """Weighted average of subtask progress for *task_id*.

        With no (non-archived) subtasks the parent's own explicit progress is
        returned when *parent* is given, otherwise 0.

        Raises:
            InvalidWeightError: if an override in *weights* is out of bounds.
        """
        active = [t for t in subtasks if t.occupies_position and t.id != task_id]
        if not active:
            kept = parent.progress if parent is not None and parent.progress is not None else 0
            return ProgressResult(task_id=task_id, progress=int(kept))

        breakdown: list[SubtaskProgress] = []
        for sub in active:
            weight, source = self.resolve_weight(sub, weights)
            breakdown.append(SubtaskProgress(
                task_id=sub.id,
                title=sub.title,
                status=sub.status.value,
                progress=self.individual_progress(sub),
                weight=weight,
                weight_source=source,
            ))
        progress, total_weight = self._weighted((b.progress, b.weight) for b in breakdown)
        result = ProgressResult(
            task_id=task_id,
            progress=progress,
            breakdown=breakdown,
            total_weight=total_weight,
            auto_complete_eligible=all(b.is_completed for b in breakdown),
        )
        logger.debug(
            "Progress for {}: {}% over {} subtask(s), total weight {}",
            task_id, progress, len(breakdown), total_weight,
        )
        return result

    @staticmethod
    def _weighted(pairs: Iterable[tuple[int, float]]) -> tuple[int, float]:
        total_weight = 0.0
        accumulated = 0.0
        for progress, weight in pairs:
            total_weight += weight
            accumulated += progress / COMPLETE_PERCENTAGE * weight
        if total_weight <= 0:
            return 0, 0.0
        return int(round(COMPLETE_PERCENTAGE * accumulated / total_weight)), round(total_weight, 4)

    def calculate_hierarchical(
        self,
        task_id: str,
        tasks: Iterable[Task],
        weights: Optional[Mapping[str, float]] = None,
        *,
        max_depth: Optional[int] = None,
    ) -> ProgressNode:
        """Aggregate bottom-up through every level of the subtask tree.

        Below *max_depth* a task counts with its own progress.  A task that
        reappears on its own ancestor path is cut off (corrupted parent data).

        Raises:
            TaskNotFoundError: if *task_id* is not among *tasks*.
        """
        task_list = list(tasks)
        by_id = {t.id: t for t in task_list}
        if task_id not in by_id:
            raise TaskNotFoundError(task_id)
        index = children_index(task_list)
        limit = max_depth if max_depth is not None else self.policy.max_depth

        def _visit(task: Task, depth: int, path: frozenset[str]) -> ProgressNode:
            weight, _source = self.resolve_weight(task, weights)
            node = ProgressNode(task_id=task.id, progress=self.individual_progress(task), weight=weight, depth=depth)
            kids = index.get(task.id, [])
            if not kids:
                return node
            if depth >= limit:
                node.truncated = True
                return node
            for child in kids:
                if child.id in path:
                    logger.warning("Parent loop detected at {} under {}; skipping", child.id, task.id)
                    node.truncated = True
                    continue
                node.children.append(_visit(child, depth + 1, path | {child.id}))
            if node.children:
                node.progress, _ = self._weighted((c.progress, c.weight) for c in node.children)
                node.auto_complete_eligible = all(by_id[c.task_id].is_done for c in node.children)
            return node

        root = by_id[task_id]
        return _visit(root, 0, frozenset({task_id}))

    def subtask_hierarchy(
        self,
        task_id: str,
        tasks: Iterable[Task],
        *,
        max_depth: Optional[int] = None,
    ) -> SubtaskHierarchy:
        """Nested view of every subtask under *task_id*."""
        task_list = list(tasks)
        if not any(t.id == task_id for t in task_list):
            raise TaskNotFoundError(task_id)
        index = children_index(task_list)
        limit = max_depth if max_depth is not None else self.policy.max_depth

        def _build(tid: str, parent_id: Optional[str], depth: int, path: list[str]) -> SubtaskHierarchy:
            node = SubtaskHierarchy(task_id=tid, parent_task_id=parent_id, depth=depth, path=path)
            if depth >= limit:
                return node
            for child in index.get(tid, []):
                if child.id in path:
                    continue
                node.children.append(_build(child.id, tid, depth + 1, path + [child.id]))
            return node

        return _build(task_id, None, 0, [task_id])
