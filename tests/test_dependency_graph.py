"""Tests for graph construction, ordering and critical path analysis."""

from __future__ import annotations

from typing import Any, Optional

from taskgraph.config import CriticalPathPolicy
from taskgraph.graph.builder import build_graph
from taskgraph.graph.critical_path import execution_batches, find_critical_path, topological_order
from taskgraph.model import DependencyEdge, Task, TaskStatus


def _task(tid: str, hours: Optional[float] = None, **kwargs: Any) -> Task:
    return Task(id=tid, title=tid, estimated_hours=hours, **kwargs)


def _edges(*pairs: tuple[str, str]) -> list[DependencyEdge]:
    return [DependencyEdge(task_id=a, depends_on_task_id=b) for a, b in pairs]


class TestBuildGraph:
    def test_chain_roots_leaves_depths(self) -> None:
        tasks = [_task("A"), _task("B"), _task("C"), _task("D")]
        graph = build_graph(tasks, _edges(("B", "A"), ("C", "B"), ("D", "C")))
        assert graph.roots == ["A"]
        assert graph.leaves == ["D"]
        assert [graph.nodes[t].depth for t in "ABCD"] == [0, 1, 2, 3]
        assert graph.max_depth == 3
        assert graph.dependencies_of("B") == ["A"]
        assert graph.dependents_of("A") == ["B"]

    def test_diamond_depth_is_longest_chain(self) -> None:
        tasks = [_task(t) for t in "ABCDE"]
        edges = _edges(("B", "A"), ("C", "B"), ("D", "A"), ("D", "C"), ("E", "D"))
        graph = build_graph(tasks, edges)
        assert graph.nodes["D"].depth == 3
        assert graph.nodes["E"].depth == 4

    def test_archived_tasks_and_their_edges_skipped(self) -> None:
        tasks = [_task("A"), _task("B", archived=True), _task("C")]
        graph = build_graph(tasks, _edges(("B", "A"), ("C", "A")))
        assert "B" not in graph
        assert len(graph) == 2
        assert len(graph.edges) == 1

    def test_duplicate_edges_collapse(self) -> None:
        graph = build_graph([_task("A"), _task("B")], _edges(("B", "A"), ("B", "A")))
        assert len(graph.edges) == 1
        assert graph.dependents_of("A") == ["B"]

    def test_edges_with_missing_endpoints_ignored(self) -> None:
        graph = build_graph([_task("A")], _edges(("A", "ghost")))
        assert graph.edges == []
        assert graph.roots == ["A"]

    def test_cyclic_data_does_not_hang(self) -> None:
        tasks = [_task("A"), _task("B"), _task("C")]
        graph = build_graph(tasks, _edges(("A", "B"), ("B", "A")))
        assert graph.roots == ["C"]
        assert graph.nodes["A"].depth == 0
        assert graph.nodes["B"].depth == 0


class TestTopologicalOrder:
    def test_order_respects_dependencies(self) -> None:
        tasks = [_task("C"), _task("B"), _task("A")]
        graph = build_graph(tasks, _edges(("C", "B"), ("B", "A")))
        order, unresolved = topological_order(graph)
        assert order == ["A", "B", "C"]
        assert unresolved == []

    def test_cycle_members_unresolved(self) -> None:
        tasks = [_task("A"), _task("B"), _task("C")]
        graph = build_graph(tasks, _edges(("A", "B"), ("B", "A"), ("C", "A")))
        order, unresolved = topological_order(graph)
        assert order == []
        assert set(unresolved) == {"A", "B", "C"}


class TestCriticalPath:
    def test_linear_chain(self) -> None:
        tasks = [_task("A", 4), _task("B", 2), _task("C", 6), _task("D", 3)]
        graph = build_graph(tasks, _edges(("B", "A"), ("C", "B"), ("D", "C")))
        result = find_critical_path(graph)
        assert result.path == ["A", "B", "C", "D"]
        assert result.total_duration == 15.0
        assert result.starting_tasks == ["A"]
        assert result.ending_tasks == ["D"]
        assert result.dependency_count == 3

    def test_longest_branch_wins(self) -> None:
        tasks = [_task("A", 2), _task("B", 5), _task("C", 1), _task("D", 1)]
        edges = _edges(("B", "A"), ("C", "A"), ("D", "B"), ("D", "C"))
        result = find_critical_path(build_graph(tasks, edges))
        assert result.path == ["A", "B", "D"]
        assert result.total_duration == 8.0

    def test_duration_overrides(self) -> None:
        tasks = [_task("A", 2), _task("B", 5), _task("C", 1), _task("D", 1)]
        edges = _edges(("B", "A"), ("C", "A"), ("D", "B"), ("D", "C"))
        durations = {"A": 1, "B": 1, "C": 10, "D": 1}
        result = find_critical_path(build_graph(tasks, edges), durations)
        assert result.path == ["A", "C", "D"]
        assert result.total_duration == 12.0

    def test_missing_estimate_uses_fallback(self) -> None:
        graph = build_graph([_task("X")], [])
        assert find_critical_path(graph).total_duration == 8.0
        policy = CriticalPathPolicy(fallback_duration_hours=2)
        assert find_critical_path(graph, policy=policy).total_duration == 2.0

    def test_empty_graph(self) -> None:
        result = find_critical_path(build_graph([], []))
        assert result.path == []
        assert result.total_duration == 0.0

    def test_bottlenecks(self) -> None:
        tasks = [_task(t) for t in ["A", "B", "C", "D", "E", "F", "Y1", "Y2"]]
        tasks.append(_task("X", status=TaskStatus.DONE))
        edges = _edges(
            ("B", "A"), ("C", "A"), ("D", "A"),
            ("E", "B"), ("F", "B"),
            ("Y1", "X"), ("Y2", "X"),
        )
        result = find_critical_path(build_graph(tasks, edges))
        assert result.bottlenecks == ["A", "B"]

    def test_to_dict(self) -> None:
        graph = build_graph([_task("A", 1), _task("B", 1)], _edges(("B", "A")))
        data = find_critical_path(graph).to_dict()
        assert data["critical_path"] == ["A", "B"]
        assert data["total_duration"] == 2.0
        assert data["dependency_count"] == 1


class TestExecutionBatches:
    def test_batches_ordered_by_priority(self) -> None:
        tasks = [_task("A", priority=1), _task("B", priority=5), _task("C")]
        graph = build_graph(tasks, _edges(("C", "A"), ("C", "B")))
        assert execution_batches(graph) == [["B", "A"], ["C"]]

    def test_done_tasks_no_longer_gate(self) -> None:
        tasks = [_task("A", status=TaskStatus.DONE), _task("B"), _task("C")]
        graph = build_graph(tasks, _edges(("C", "A"), ("C", "B")))
        assert execution_batches(graph) == [["B"], ["C"]]
        assert execution_batches(graph, include_terminal=True) == [["A", "B"], ["C"]]
