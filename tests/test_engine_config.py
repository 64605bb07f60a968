"""Tests for engine policy configuration (taskgraph/config.py)."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from taskgraph.config import EngineConfig, ImpactPolicy, config_from_dict, load_engine_config


def _write_config(project_dir: Path, text: str) -> None:
    state_dir = project_dir / ".taskgraph"
    state_dir.mkdir(parents=True, exist_ok=True)
    (state_dir / "config.yaml").write_text(text, encoding="utf-8")


class TestLoadEngineConfig:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config, err = load_engine_config(tmp_path)
        assert err is None
        assert config == EngineConfig()
        assert config.critical_path.fallback_duration_hours == 8.0
        assert config.progress.max_weight == 5.0

    def test_overrides_applied(self, tmp_path: Path) -> None:
        _write_config(tmp_path, yaml.safe_dump({
            "impact": {"high_risk_threshold": 20},
            "critical_path": {"bottleneck_threshold": 3},
        }))
        config, err = load_engine_config(tmp_path)
        assert err is None
        assert config.impact.high_risk_threshold == 20
        assert config.impact.medium_risk_threshold == 5.0
        assert config.critical_path.bottleneck_threshold == 3

    def test_invalid_yaml_reported(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "impact: [unclosed\n")
        config, err = load_engine_config(tmp_path)
        assert err is not None
        assert "YAMLError" in err
        assert config == EngineConfig()

    def test_non_mapping_reported(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "- just\n- a list\n")
        config, err = load_engine_config(tmp_path)
        assert err is not None
        assert "expected mapping" in err

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        _write_config(tmp_path, "")
        config, err = load_engine_config(tmp_path)
        assert err is None
        assert config == EngineConfig()


class TestConfigValidation:
    def test_invalid_values_fall_back(self) -> None:
        config, err = config_from_dict({"progress": {"min_weight": 3, "max_weight": 1}})
        assert err is not None
        assert err.startswith("invalid engine config")
        assert config == EngineConfig()

    def test_negative_duration_rejected(self) -> None:
        config, err = config_from_dict({"critical_path": {"fallback_duration_hours": -1}})
        assert err is not None
        assert config.critical_path.fallback_duration_hours == 8.0

    def test_threshold_order_enforced(self) -> None:
        with pytest.raises(ValidationError):
            ImpactPolicy(high_risk_threshold=1, medium_risk_threshold=2)
