"""Task and dependency-edge model for the dependency & ordering engine.

Tasks live in ordered columns on boards, may have a parent task (the subtask
tree) and are linked by directed "depends-on" edges.  Both records are plain
dataclasses that serialize to dicts for the storage collaborator; enums are
coerced gracefully on the way back in.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Scheduling status of a task."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"
    ARCHIVED = "archived"


class DependencyType(str, Enum):
    """Kind of relation an edge expresses.

    Every type orders work the same way; the type is recorded for callers and
    only changes how the edge is drawn in DOT output.
    """

    BLOCKS = "blocks"
    RELATES_TO = "relates_to"
    DUPLICATES = "duplicates"


class WeightType(str, Enum):
    CUSTOM = "custom"
    AUTO = "auto"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date/datetime string (or pass through a date).

    Returns ``None`` for empty or unparsable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None


def _coerce_enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        return default


def _optional_float(raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Weight configuration
# ---------------------------------------------------------------------------

@dataclass
class WeightConfig:
    """Structured per-task weight override used by progress aggregation."""

    factor: float
    type: WeightType = WeightType.CUSTOM
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"factor": self.factor, "type": self.type.value, "updated_at": self.updated_at}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["WeightConfig"]:
        if not isinstance(data, dict):
            return None
        factor = _optional_float(data.get("factor"))
        if factor is None:
            return None
        return cls(
            factor=factor,
            type=_coerce_enum(WeightType, data.get("type"), WeightType.CUSTOM),
            updated_at=str(data.get("updated_at") or now_iso()),
        )


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A work item placed in a board column."""

    # Identity
    id: str = field(default_factory=lambda: _generate_id("task"))
    title: str = ""
    description: str = ""

    # Placement
    board_id: str = ""
    column_id: str = ""
    position: int = 0

    # Scheduling
    status: TaskStatus = TaskStatus.TODO
    priority: int = 0
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    progress: Optional[int] = None  # None = derive from status
    due_date: Optional[str] = None
    assignee: Optional[str] = None

    # Hierarchy
    parent_task_id: Optional[str] = None
    weight_config: Optional[WeightConfig] = None
    auto_complete: bool = True

    archived: bool = False

    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    metadata: dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for k, v in asdict(self).items():
            if isinstance(v, Enum):
                data[k] = v.value
            else:
                data[k] = v
        data["weight_config"] = self.weight_config.to_dict() if self.weight_config else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        d = dict(data)
        progress_raw = d.pop("progress", None)
        return cls(
            id=str(d.pop("id", None) or _generate_id("task")),
            title=str(d.pop("title", "") or ""),
            description=str(d.pop("description", "") or ""),
            board_id=str(d.pop("board_id", "") or ""),
            column_id=str(d.pop("column_id", "") or ""),
            position=int(d.pop("position", 0) or 0),
            status=_coerce_enum(TaskStatus, d.pop("status", None), TaskStatus.TODO),
            priority=int(d.pop("priority", 0) or 0),
            estimated_hours=_optional_float(d.pop("estimated_hours", None)),
            actual_hours=_optional_float(d.pop("actual_hours", None)),
            progress=int(progress_raw) if progress_raw is not None else None,
            due_date=d.pop("due_date", None),
            assignee=d.pop("assignee", None),
            parent_task_id=d.pop("parent_task_id", None),
            weight_config=WeightConfig.from_dict(d.pop("weight_config", None)),
            auto_complete=bool(d.pop("auto_complete", True)),
            archived=bool(d.pop("archived", False)),
            created_at=str(d.pop("created_at", None) or now_iso()),
            updated_at=str(d.pop("updated_at", None) or now_iso()),
            completed_at=d.pop("completed_at", None),
            metadata=dict(d.pop("metadata", {}) or {}),
        )

    @classmethod
    def validate_dict(cls, data: dict[str, Any]) -> list[str]:
        """Check the constraints the engine relies on.  Empty list = valid."""
        errors: list[str] = []
        if not isinstance(data, dict):
            return ["Expected a dict"]
        if not data.get("id"):
            errors.append("'id' is required and must be non-empty")
        status = data.get("status")
        if status is not None:
            valid_statuses = {e.value for e in TaskStatus}
            if status not in valid_statuses:
                errors.append(f"'status' must be one of {sorted(valid_statuses)}, got '{status}'")
        position = data.get("position")
        if position is not None and (not isinstance(position, int) or position < 0):
            errors.append("'position' must be a non-negative integer")
        progress = data.get("progress")
        if progress is not None and (not isinstance(progress, (int, float)) or not 0 <= progress <= 100):
            errors.append("'progress' must be a number between 0 and 100")
        for hours_field in ("estimated_hours", "actual_hours"):
            val = data.get(hours_field)
            if val is not None and (not isinstance(val, (int, float)) or val < 0):
                errors.append(f"'{hours_field}' must be a non-negative number")
        if data.get("parent_task_id") and data.get("parent_task_id") == data.get("id"):
            errors.append("'parent_task_id' cannot reference the task itself")
        return errors

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        self.updated_at = now_iso()

    def transition(self, new_status: TaskStatus) -> None:
        self.status = new_status
        if new_status == TaskStatus.DONE:
            self.completed_at = now_iso()
        self.touch()

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.DONE, TaskStatus.ARCHIVED)

    @property
    def occupies_position(self) -> bool:
        """Archived tasks do not hold a slot in their column's sequence."""
        return not self.archived and self.status != TaskStatus.ARCHIVED

    @property
    def due(self) -> Optional[date]:
        return parse_date(self.due_date)


# ---------------------------------------------------------------------------
# Dependency edge
# ---------------------------------------------------------------------------

@dataclass
class DependencyEdge:
    """``task_id`` depends on ``depends_on_task_id``."""

    task_id: str
    depends_on_task_id: str
    dependency_type: DependencyType = DependencyType.BLOCKS
    id: str = field(default_factory=lambda: _generate_id("dep"))
    created_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.task_id, self.depends_on_task_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "depends_on_task_id": self.depends_on_task_id,
            "dependency_type": self.dependency_type.value,
            "created_at": self.created_at,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DependencyEdge":
        return cls(
            task_id=str(data.get("task_id") or ""),
            depends_on_task_id=str(data.get("depends_on_task_id") or ""),
            dependency_type=_coerce_enum(DependencyType, data.get("dependency_type"), DependencyType.BLOCKS),
            id=str(data.get("id") or _generate_id("dep")),
            created_at=str(data.get("created_at") or now_iso()),
            metadata=dict(data.get("metadata") or {}),
        )
