"""Tests for impact, reachability, grouping and scheduling analyses."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

import pytest

from taskgraph.config import ImpactPolicy
from taskgraph.errors import TaskNotFoundError
from taskgraph.graph.builder import DependencyGraph, build_graph
from taskgraph.graph.impact import (
    analyze_impact,
    dependency_depth,
    downstream_ids,
    duration_days,
    earliest_start_dates,
    impact_score,
    parallel_groups,
    risk_level,
    upstream_ids,
)
from taskgraph.model import DependencyEdge, Task, TaskStatus

TODAY = date(2026, 1, 10)


def _task(tid: str, hours: Optional[float] = None, **kwargs: Any) -> Task:
    return Task(id=tid, title=tid, estimated_hours=hours, **kwargs)


def _edges(*pairs: tuple[str, str]) -> list[DependencyEdge]:
    return [DependencyEdge(task_id=a, depends_on_task_id=b) for a, b in pairs]


def _chain(**first: Any) -> DependencyGraph:
    tasks = [_task("A", **first), _task("B"), _task("C"), _task("D")]
    return build_graph(tasks, _edges(("B", "A"), ("C", "B"), ("D", "C")))


class TestReachability:
    def test_downstream(self) -> None:
        assert downstream_ids(_chain(), "A") == ["B", "C", "D"]

    def test_upstream(self) -> None:
        assert upstream_ids(_chain(), "D") == ["C", "B", "A"]

    def test_unknown_task(self) -> None:
        with pytest.raises(TaskNotFoundError):
            downstream_ids(_chain(), "nope")


class TestImpactScore:
    def test_weights_and_priority(self) -> None:
        policy = ImpactPolicy()
        assert impact_score(2, 3, 5, None, TODAY, policy) == 18.0
        assert impact_score(1, 2, 0, None, TODAY, policy) == 5.0

    def test_due_date_multipliers(self) -> None:
        policy = ImpactPolicy()
        assert impact_score(1, 2, 0, date(2026, 1, 5), TODAY, policy) == 7.5
        assert impact_score(1, 2, 0, date(2026, 1, 12), TODAY, policy) == 6.5
        assert impact_score(1, 2, 0, date(2026, 1, 20), TODAY, policy) == 5.0

    def test_risk_thresholds_are_strict(self) -> None:
        policy = ImpactPolicy()
        assert risk_level(10.0, policy) == "medium"
        assert risk_level(10.01, policy) == "high"
        assert risk_level(5.0, policy) == "low"
        assert risk_level(5.5, policy) == "medium"


class TestAnalyzeImpact:
    def test_chain(self) -> None:
        result = analyze_impact(_chain(), "A", today=TODAY)
        assert result.direct_dependents == ["B"]
        assert set(result.indirect_dependents) == {"C", "D"}
        assert result.total_impact == 3
        assert result.would_block_count == 1
        assert result.impact_score == 5.0
        assert result.risk_level == "low"

    def test_priority_raises_score(self) -> None:
        result = analyze_impact(_chain(priority=5), "A", today=TODAY)
        assert result.impact_score == 10.0
        assert result.risk_level == "medium"

    def test_overdue(self) -> None:
        result = analyze_impact(_chain(due_date="2026-01-05"), "A", today=TODAY)
        assert result.impact_score == 7.5

    def test_done_task_ignores_due_date(self) -> None:
        result = analyze_impact(_chain(due_date="2026-01-05", status=TaskStatus.DONE), "A", today=TODAY)
        assert result.impact_score == 5.0

    def test_leaf_has_no_impact(self) -> None:
        result = analyze_impact(_chain(), "D", today=TODAY)
        assert result.total_impact == 0
        assert result.impact_score == 0.0
        assert result.recommendations == []
        assert result.upstream == ["C", "B", "A"]

    def test_blocked_task_recommendation(self) -> None:
        result = analyze_impact(_chain(status=TaskStatus.BLOCKED), "A", today=TODAY)
        assert "Currently blocked: prioritize unblocking this task" in result.recommendations

    def test_unknown_task(self) -> None:
        with pytest.raises(TaskNotFoundError):
            analyze_impact(_chain(), "nope", today=TODAY)

    def test_to_dict(self) -> None:
        data = analyze_impact(_chain(), "A", today=TODAY).to_dict()
        assert data["total_impact"] == 3
        assert data["would_block_count"] == 1
        assert data["risk_level"] == "low"


class TestParallelGroups:
    def test_related_tasks_split(self) -> None:
        tasks = [_task("A"), _task("B"), _task("C")]
        graph = build_graph(tasks, _edges(("B", "A")))
        assert parallel_groups(graph, ["A", "B", "C"]) == [["A", "C"], ["B"]]

    def test_transitive_relation_split(self) -> None:
        groups = parallel_groups(_chain(), ["A", "D"])
        assert groups == [["A"], ["D"]]

    def test_independent_tasks_share_group(self) -> None:
        graph = build_graph([_task("A"), _task("B")], [])
        assert parallel_groups(graph, ["A", "B"]) == [["A", "B"]]


class TestDepthAndSchedule:
    def test_dependency_depth(self) -> None:
        graph = _chain()
        assert dependency_depth(graph, "A") == 0
        assert dependency_depth(graph, "D") == 3

    def test_dependency_depth_diamond(self) -> None:
        tasks = [_task(t) for t in "ABCD"]
        graph = build_graph(tasks, _edges(("B", "A"), ("C", "A"), ("D", "B"), ("D", "C")))
        assert dependency_depth(graph, "D") == 2

    def test_duration_days(self) -> None:
        assert duration_days(None, 8) == 1
        assert duration_days(12, 8) == 2
        assert duration_days(0, 8) == 0

    def test_earliest_start_chain(self) -> None:
        tasks = [_task("A", 8), _task("B", 16), _task("C", 4)]
        graph = build_graph(tasks, _edges(("B", "A"), ("C", "B")))
        starts = earliest_start_dates(graph, date(2026, 3, 2))
        assert starts == {"A": date(2026, 3, 2), "B": date(2026, 3, 3), "C": date(2026, 3, 5)}

    def test_earliest_start_takes_latest_predecessor(self) -> None:
        tasks = [_task("A", 8), _task("B", 8), _task("C", 24), _task("D", 8)]
        graph = build_graph(tasks, _edges(("B", "A"), ("C", "A"), ("D", "B"), ("D", "C")))
        starts = earliest_start_dates(graph, date(2026, 3, 2), ["D"])
        assert starts == {"D": date(2026, 3, 6)}
