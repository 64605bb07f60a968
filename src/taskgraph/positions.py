"""Dense 1..N ordering of tasks within a column.

:class:`PositionSequencer` works on a private copy of a column snapshot and
returns :class:`PositionShift` instructions for the storage collaborator to
apply inside the same unit of work.  Archived tasks never hold a slot.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from loguru import logger

from .errors import PositionInvariantViolation, TaskNotFoundError
from .model import Task


@dataclass(frozen=True)
class PositionShift:
    """Add ``delta`` to every active task in ``column_id`` whose position is
    within ``[start, end]`` (``end=None`` means unbounded)."""

    column_id: str
    delta: int
    start: int
    end: Optional[int] = None
    exclude_task_id: Optional[str] = None

    def applies_to(self, task: Task) -> bool:
        if task.column_id != self.column_id or not task.occupies_position:
            return False
        if self.exclude_task_id is not None and task.id == self.exclude_task_id:
            return False
        if task.position < self.start:
            return False
        return self.end is None or task.position <= self.end

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_id": self.column_id,
            "delta": self.delta,
            "start": self.start,
            "end": self.end,
            "exclude_task_id": self.exclude_task_id,
        }


def apply_shift(tasks: Iterable[Task], shift: PositionShift) -> int:
    """Apply *shift* to *tasks* in place; returns the number of rows moved."""
    moved = 0
    for task in tasks:
        if shift.applies_to(task):
            task.position += shift.delta
            moved += 1
    return moved


@dataclass
class PositionPlan:
    """Where a task ends up and which shifts make room for it."""

    column_id: str
    position: int
    task_id: Optional[str] = None
    shifts: list[PositionShift] = field(default_factory=list)


@dataclass
class ColumnValidation:
    column_id: str
    is_valid: bool
    issues: list[str] = field(default_factory=list)
    task_count: int = 0

    def raise_for_issues(self) -> None:
        if not self.is_valid:
            raise PositionInvariantViolation(self.column_id, self.issues)

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_id": self.column_id,
            "is_valid": self.is_valid,
            "issues": list(self.issues),
            "task_count": self.task_count,
        }


class PositionSequencer:
    """Compute position changes for insert, remove, move and normalize.

    Parameters
    ----------
    tasks:
        Snapshot of the tasks in the affected column(s).  The sequencer keeps
        its own copies and updates them as operations are planned, so several
        operations can be composed against one snapshot.
    """

    def __init__(self, tasks: Iterable[Task]) -> None:
        self._tasks: dict[str, Task] = {t.id: replace(t) for t in tasks}

    # -- lookups ------------------------------------------------------------

    def column(self, column_id: str) -> list[Task]:
        active = [t for t in self._tasks.values() if t.column_id == column_id and t.occupies_position]
        return sorted(active, key=lambda t: (t.position, t.id))

    def column_order(self, column_id: str) -> list[str]:
        return [t.id for t in self.column(column_id)]

    def next_position(self, column_id: str) -> int:
        return max((t.position for t in self.column(column_id)), default=0) + 1

    def _apply(self, shift: PositionShift) -> PositionShift:
        apply_shift(self._tasks.values(), shift)
        return shift

    def _place(self, task_id: Optional[str], column_id: str, position: int) -> None:
        if task_id is None:
            return
        task = self._tasks.get(task_id)
        if task is None:
            task = Task(id=task_id)
            self._tasks[task_id] = task
        task.column_id = column_id
        task.position = position
        task.archived = False

    def _holds_slot(self, task_id: Optional[str], column_id: str) -> bool:
        task = self._tasks.get(task_id) if task_id is not None else None
        return task is None or (task.column_id == column_id and task.occupies_position)

    # -- operations ---------------------------------------------------------

    def insert(self, column_id: str, position: Optional[int] = None, task_id: Optional[str] = None) -> PositionPlan:
        """Make room at *position* (default: end of column).

        The position is clamped to ``[1, next_position]`` so no gap can form.
        """
        if task_id is not None:
            existing = self._tasks.get(task_id)
            if existing is not None and existing.column_id == column_id and existing.occupies_position:
                # Already in this column: treat as a move.
                target = position if position is not None else len(self.column(column_id))
                return self.move(column_id, existing.position, target, task_id)
        upper = self.next_position(column_id)
        target = upper if position is None else min(max(position, 1), upper)
        plan = PositionPlan(column_id=column_id, position=target, task_id=task_id)
        if target < upper:
            plan.shifts.append(self._apply(PositionShift(column_id, +1, target, exclude_task_id=task_id)))
        self._place(task_id, column_id, target)
        return plan

    def remove(self, column_id: str, position: int, task_id: Optional[str] = None) -> PositionPlan:
        """Close the gap left by the task at *position*."""
        if task_id is not None:
            self._tasks.pop(task_id, None)
        else:
            for task in self.column(column_id):
                if task.position == position:
                    self._tasks.pop(task.id)
                    break
        shift = self._apply(PositionShift(column_id, -1, position + 1, exclude_task_id=task_id))
        return PositionPlan(column_id=column_id, position=position, task_id=task_id, shifts=[shift])

    def move(self, column_id: str, old_position: int, new_position: int, task_id: Optional[str] = None) -> PositionPlan:
        """Move within one column.  Target is clamped to ``[1, N]``."""
        if not self._holds_slot(task_id, column_id):
            # Nothing to vacate; place it like a new arrival.
            return self.insert(column_id, new_position, task_id=task_id)
        count = len(self.column(column_id))
        target = min(max(new_position, 1), max(count, 1))
        if task_id is None:
            for task in self.column(column_id):
                if task.position == old_position:
                    task_id = task.id
                    break
        plan = PositionPlan(column_id=column_id, position=target, task_id=task_id)
        if target == old_position:
            return plan
        if target > old_position:
            shift = PositionShift(column_id, -1, old_position + 1, target, exclude_task_id=task_id)
        else:
            shift = PositionShift(column_id, +1, target, old_position - 1, exclude_task_id=task_id)
        plan.shifts.append(self._apply(shift))
        self._place(task_id, column_id, target)
        return plan

    def move_across_columns(
        self,
        task_id: str,
        old_column_id: str,
        new_column_id: str,
        old_position: int,
        new_position: Optional[int] = None,
    ) -> PositionPlan:
        """Remove from the old column, then insert into the new one."""
        if old_column_id == new_column_id:
            target = new_position if new_position is not None else len(self.column(old_column_id))
            return self.move(old_column_id, old_position, target, task_id)
        task = self._tasks.get(task_id)
        if not self._holds_slot(task_id, old_column_id):
            return self.insert(new_column_id, new_position, task_id=task_id)
        removed = self.remove(old_column_id, old_position, task_id)
        inserted = self.insert(new_column_id, new_position, task_id=task_id)
        if task is not None:
            task.column_id = new_column_id
            task.position = inserted.position
            self._tasks[task_id] = task
        return PositionPlan(
            column_id=new_column_id,
            position=inserted.position,
            task_id=task_id,
            shifts=removed.shifts + inserted.shifts,
        )

    def normalize(self, column_id: str) -> list[tuple[str, int]]:
        """Renumber the column ``1..N`` in current order; returns the changes."""
        changes: list[tuple[str, int]] = []
        for index, task in enumerate(self.column(column_id), start=1):
            if task.position != index:
                changes.append((task.id, index))
                task.position = index
        if changes:
            logger.info("Normalized {} position(s) in column {}", len(changes), column_id)
        return changes

    def validate(self, column_id: str) -> ColumnValidation:
        """Report duplicate, non-sequential or non-positive positions."""
        positions = [t.position for t in self.column(column_id)]
        issues: list[str] = []
        if len(set(positions)) != len(positions):
            dupes = sorted(p for p, n in Counter(positions).items() if n > 1)
            issues.append(f"Duplicate positions found: {dupes}")
        if positions != list(range(1, len(positions) + 1)):
            issues.append("Positions are not sequential starting from 1")
        if any(p <= 0 for p in positions):
            issues.append("Invalid positions (zero or negative) found")
        return ColumnValidation(
            column_id=column_id,
            is_valid=not issues,
            issues=issues,
            task_count=len(positions),
        )

    def position_of(self, task_id: str) -> int:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task.position
