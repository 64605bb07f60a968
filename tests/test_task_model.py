"""Tests for the task and dependency-edge model (taskgraph/model.py)."""

from __future__ import annotations

from datetime import date

from taskgraph.model import (
    DependencyEdge,
    DependencyType,
    Task,
    TaskStatus,
    WeightConfig,
    WeightType,
    parse_date,
)


class TestTaskCreation:
    def test_default_values(self) -> None:
        t = Task(title="Test task")
        assert t.title == "Test task"
        assert t.status == TaskStatus.TODO
        assert t.progress is None
        assert t.parent_task_id is None
        assert t.weight_config is None
        assert t.auto_complete is True
        assert t.archived is False
        assert t.id.startswith("task-")
        assert len(t.id) == 13  # "task-" + 8 hex chars

    def test_id_generation_unique(self) -> None:
        ids = {Task().id for _ in range(100)}
        assert len(ids) == 100


class TestTaskSerialization:
    def test_round_trip(self) -> None:
        t = Task(
            title="Write docs",
            board_id="b1",
            column_id="todo",
            position=3,
            status=TaskStatus.IN_PROGRESS,
            priority=7,
            estimated_hours=12.5,
            progress=40,
            due_date="2026-03-01",
            parent_task_id="task-parent",
            weight_config=WeightConfig(factor=2.5),
            metadata={"key": "value"},
        )
        d = t.to_dict()
        assert d["status"] == "in_progress"
        assert d["weight_config"]["factor"] == 2.5
        assert d["weight_config"]["type"] == "custom"

        restored = Task.from_dict(d)
        assert restored.id == t.id
        assert restored.status == TaskStatus.IN_PROGRESS
        assert restored.position == 3
        assert restored.priority == 7
        assert restored.estimated_hours == 12.5
        assert restored.progress == 40
        assert restored.parent_task_id == "task-parent"
        assert restored.weight_config is not None
        assert restored.weight_config.factor == 2.5
        assert restored.weight_config.type == WeightType.CUSTOM
        assert restored.metadata == {"key": "value"}

    def test_from_dict_coerces_unknown_status(self) -> None:
        t = Task.from_dict({"id": "t1", "status": "nonsense"})
        assert t.status == TaskStatus.TODO

    def test_from_dict_tolerates_bad_numbers(self) -> None:
        t = Task.from_dict({"id": "t1", "estimated_hours": "lots", "weight_config": {"factor": None}})
        assert t.estimated_hours is None
        assert t.weight_config is None

    def test_validate_dict(self) -> None:
        assert Task.validate_dict({"id": "t1", "status": "done", "position": 2}) == []
        errors = Task.validate_dict({"id": "", "status": "later", "position": -1, "progress": 120})
        assert len(errors) == 4

    def test_validate_dict_rejects_self_parent(self) -> None:
        errors = Task.validate_dict({"id": "t1", "parent_task_id": "t1"})
        assert any("parent_task_id" in e for e in errors)


class TestTaskHelpers:
    def test_transition_to_done_sets_completed_at(self) -> None:
        t = Task(title="x")
        assert t.completed_at is None
        t.transition(TaskStatus.DONE)
        assert t.is_done
        assert t.is_terminal
        assert t.completed_at is not None

    def test_occupies_position(self) -> None:
        assert Task().occupies_position
        assert not Task(archived=True).occupies_position
        assert not Task(status=TaskStatus.ARCHIVED).occupies_position

    def test_due(self) -> None:
        assert Task(due_date="2026-01-05T10:00:00Z").due == date(2026, 1, 5)
        assert Task().due is None

    def test_parse_date(self) -> None:
        assert parse_date("2026-02-03") == date(2026, 2, 3)
        assert parse_date(date(2026, 2, 3)) == date(2026, 2, 3)
        assert parse_date("not a date") is None
        assert parse_date("") is None


class TestDependencyEdge:
    def test_round_trip(self) -> None:
        e = DependencyEdge("t2", "t1", DependencyType.RELATES_TO, metadata={"note": "soft"})
        restored = DependencyEdge.from_dict(e.to_dict())
        assert restored.key == ("t2", "t1")
        assert restored.dependency_type == DependencyType.RELATES_TO
        assert restored.id == e.id
        assert restored.metadata == {"note": "soft"}

    def test_unknown_type_defaults_to_blocks(self) -> None:
        e = DependencyEdge.from_dict({"task_id": "a", "depends_on_task_id": "b", "dependency_type": "??"})
        assert e.dependency_type == DependencyType.BLOCKS
        assert e.id.startswith("dep-")
