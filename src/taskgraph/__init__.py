"""Provide the public `taskgraph` package exports."""

from __future__ import annotations

from .config import EngineConfig, load_engine_config
from .errors import (
    CircularDependencyError,
    CircularParentError,
    DependencyNotFoundError,
    InvalidWeightError,
    PositionInvariantViolation,
    SelfDependencyError,
    TaskGraphError,
    TaskNotFoundError,
)
from .model import DependencyEdge, DependencyType, Task, TaskStatus, WeightConfig, WeightType
from .service import BulkDependencyResult, DependencyOperation, TaskGraphService
from .storage import FileGraphRepository, InMemoryGraphRepository

__all__ = [
    "BulkDependencyResult",
    "CircularDependencyError",
    "CircularParentError",
    "DependencyEdge",
    "DependencyNotFoundError",
    "DependencyOperation",
    "DependencyType",
    "EngineConfig",
    "FileGraphRepository",
    "InMemoryGraphRepository",
    "InvalidWeightError",
    "PositionInvariantViolation",
    "SelfDependencyError",
    "Task",
    "TaskGraphError",
    "TaskGraphService",
    "TaskNotFoundError",
    "TaskStatus",
    "WeightConfig",
    "WeightType",
    "load_engine_config",
]
