"""Typed errors raised by the dependency & ordering engine.

Every error is a :class:`ValueError` so callers that already treat bad input
as ``ValueError`` keep working; the ``code`` attribute is the stable identifier
the mutation layer reports back.
"""

from __future__ import annotations

from typing import Any, Optional


class TaskGraphError(ValueError):
    code = "TASK_GRAPH_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class SelfDependencyError(TaskGraphError):
    code = "SELF_DEPENDENCY"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} cannot depend on itself", task_id=task_id)


class CircularDependencyError(TaskGraphError):
    code = "CIRCULAR_DEPENDENCY"

    def __init__(self, task_id: str, depends_on_task_id: str, cycle: Optional[list[str]] = None) -> None:
        super().__init__(
            f"Adding dependency {task_id} -> {depends_on_task_id} would create a cycle",
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
            cycle=list(cycle or []),
        )


class TaskNotFoundError(TaskGraphError):
    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found", task_id=task_id)


class DependencyNotFoundError(TaskGraphError):
    code = "DEPENDENCY_NOT_FOUND"

    def __init__(self, task_id: str, depends_on_task_id: str) -> None:
        super().__init__(
            f"Dependency {task_id} -> {depends_on_task_id} not found",
            task_id=task_id,
            depends_on_task_id=depends_on_task_id,
        )


class PositionInvariantViolation(TaskGraphError):
    code = "POSITION_INVARIANT_VIOLATION"

    def __init__(self, column_id: str, issues: list[str]) -> None:
        super().__init__(
            f"Column {column_id} positions are invalid: {'; '.join(issues)}",
            column_id=column_id,
            issues=list(issues),
        )


class InvalidWeightError(TaskGraphError):
    code = "INVALID_WEIGHT"

    def __init__(self, weight: float, min_weight: float, max_weight: float) -> None:
        super().__init__(
            f"Weight {weight} is outside [{min_weight}, {max_weight}]",
            weight=weight,
            min_weight=min_weight,
            max_weight=max_weight,
        )


class CircularParentError(TaskGraphError):
    code = "CIRCULAR_PARENT"

    def __init__(self, task_id: str, parent_task_id: str) -> None:
        super().__init__(
            f"Making {parent_task_id} the parent of {task_id} would create a loop in the subtask tree",
            task_id=task_id,
            parent_task_id=parent_task_id,
        )
