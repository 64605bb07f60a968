"""Load engine policy configuration from `.taskgraph/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, model_validator

from . import constants
from .io_utils import _load_yaml_with_error


class CriticalPathPolicy(BaseModel):
    """Critical path and bottleneck settings."""

    fallback_duration_hours: float = Field(default=constants.FALLBACK_DURATION_HOURS, gt=0)
    bottleneck_threshold: int = Field(default=constants.BOTTLENECK_THRESHOLD, ge=1)


class ImpactPolicy(BaseModel):
    """Impact score weights and risk thresholds."""

    direct_weight: float = constants.DIRECT_DEPENDENT_WEIGHT
    indirect_weight: float = constants.INDIRECT_DEPENDENT_WEIGHT
    priority_divisor: float = Field(default=constants.PRIORITY_DIVISOR, gt=0)
    overdue_multiplier: float = constants.OVERDUE_MULTIPLIER
    due_soon_multiplier: float = constants.DUE_SOON_MULTIPLIER
    due_soon_days: int = Field(default=constants.DUE_SOON_DAYS, ge=0)
    high_risk_threshold: float = constants.HIGH_RISK_THRESHOLD
    medium_risk_threshold: float = constants.MEDIUM_RISK_THRESHOLD
    hours_per_day: float = Field(default=constants.HOURS_PER_DAY, gt=0)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "ImpactPolicy":
        if self.medium_risk_threshold > self.high_risk_threshold:
            raise ValueError("medium_risk_threshold must not exceed high_risk_threshold")
        return self


class ProgressPolicy(BaseModel):
    """Subtask weighting and hierarchy limits."""

    min_weight: float = Field(default=constants.MIN_WEIGHT, gt=0)
    max_weight: float = Field(default=constants.MAX_WEIGHT, gt=0)
    hours_per_weight_unit: float = Field(default=constants.HOURS_PER_WEIGHT_UNIT, gt=0)
    max_hours_factor: float = Field(default=constants.MAX_HOURS_FACTOR, gt=0)
    priority_step: float = constants.PRIORITY_WEIGHT_STEP
    max_depth: int = Field(default=constants.MAX_HIERARCHY_DEPTH, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ProgressPolicy":
        if self.min_weight > self.max_weight:
            raise ValueError("min_weight must not exceed max_weight")
        return self


class TraversalPolicy(BaseModel):
    max_iterations: int = Field(default=constants.MAX_TRAVERSAL_ITERATIONS, ge=1)


class EngineConfig(BaseModel):
    """Policy knobs for every analyzer.  All fields have working defaults."""

    critical_path: CriticalPathPolicy = Field(default_factory=CriticalPathPolicy)
    impact: ImpactPolicy = Field(default_factory=ImpactPolicy)
    progress: ProgressPolicy = Field(default_factory=ProgressPolicy)
    traversal: TraversalPolicy = Field(default_factory=TraversalPolicy)


def load_engine_config(project_dir: Path) -> tuple[EngineConfig, str | None]:
    """Load the optional engine config file.

    Args:
        project_dir: Directory holding the ``.taskgraph/`` state directory.

    Returns:
        A tuple of ``(config, error_message)``.  A missing file yields the
        defaults and no error; an unreadable or invalid file yields the
        defaults and a description of the problem.
    """
    path = project_dir.resolve() / constants.STATE_DIR_NAME / constants.CONFIG_FILE
    data, err = _load_yaml_with_error(path, {})
    if err:
        logger.warning("Ignoring engine config {}: {}", path, err)
        return EngineConfig(), err
    return config_from_dict(data)


def config_from_dict(data: dict[str, Any]) -> tuple[EngineConfig, str | None]:
    try:
        return EngineConfig.model_validate(data or {}), None
    except ValidationError as exc:
        message = f"invalid engine config: {exc.error_count()} error(s): {exc.errors()[0]['msg']}"
        logger.warning("{}", message)
        return EngineConfig(), message
