"""Topological ordering and longest-path (critical path) analysis."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from loguru import logger

from ..config import CriticalPathPolicy
from .builder import DependencyGraph


@dataclass
class CriticalPathResult:
    path: list[str] = field(default_factory=list)
    total_duration: float = 0.0
    starting_tasks: list[str] = field(default_factory=list)
    ending_tasks: list[str] = field(default_factory=list)
    bottlenecks: list[str] = field(default_factory=list)
    dependency_count: int = 0
    order: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "critical_path": list(self.path),
            "total_duration": self.total_duration,
            "starting_tasks": list(self.starting_tasks),
            "ending_tasks": list(self.ending_tasks),
            "bottlenecks": list(self.bottlenecks),
            "dependency_count": self.dependency_count,
        }


def topological_order(graph: DependencyGraph) -> tuple[list[str], list[str]]:
    """Kahn's algorithm over the graph.

    Returns ``(order, unresolved)`` where *unresolved* lists nodes that could
    not be ordered because they sit on (or behind) a cycle.
    """
    in_degree = {tid: len(node.dependencies) for tid, node in graph.nodes.items()}
    queue: deque[str] = deque(tid for tid, deg in in_degree.items() if deg == 0)
    order: list[str] = []
    while queue:
        tid = queue.popleft()
        order.append(tid)
        for dependent_id in graph.nodes[tid].dependents:
            in_degree[dependent_id] -= 1
            if in_degree[dependent_id] == 0:
                queue.append(dependent_id)
    unresolved = [tid for tid, deg in in_degree.items() if deg > 0]
    if unresolved:
        logger.warning("Dependency cycle detected among tasks: {}", unresolved)
    return order, unresolved


def execution_batches(graph: DependencyGraph, *, include_terminal: bool = False) -> list[list[str]]:
    """Topological sort into batches of mutually independent tasks.

    Done/archived tasks are dropped (their edges no longer gate anything)
    unless *include_terminal* is set.  Within a batch, higher priority first.
    """
    active = {
        tid for tid, node in graph.nodes.items()
        if include_terminal or not node.task.is_terminal
    }
    in_degree = {
        tid: sum(1 for d in graph.nodes[tid].dependencies if d in active)
        for tid in active
    }

    def _rank(tid: str) -> tuple[int, str]:
        return (-graph.nodes[tid].task.priority, tid)

    batches: list[list[str]] = []
    queue = sorted((tid for tid, deg in in_degree.items() if deg == 0), key=_rank)
    while queue:
        batches.append(list(queue))
        next_queue: list[str] = []
        for tid in queue:
            for neighbor in graph.nodes[tid].dependents:
                if neighbor not in active:
                    continue
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    next_queue.append(neighbor)
        queue = sorted(next_queue, key=_rank)

    remaining = [tid for tid, deg in in_degree.items() if deg > 0]
    if remaining:
        logger.warning("Dependency cycle detected among tasks: {}", remaining)
    return batches


def task_duration(graph: DependencyGraph, task_id: str, durations: Optional[Mapping[str, float]], fallback: float) -> float:
    if durations is not None and task_id in durations:
        return float(durations[task_id])
    hours = graph.nodes[task_id].task.estimated_hours
    return float(hours) if hours is not None else fallback


def find_critical_path(
    graph: DependencyGraph,
    durations: Optional[Mapping[str, float]] = None,
    *,
    policy: Optional[CriticalPathPolicy] = None,
) -> CriticalPathResult:
    """Longest duration-weighted path through the dependency DAG.

    *durations* overrides per-task durations in hours; otherwise a task's
    ``estimated_hours`` is used, falling back to the policy default when
    unset.  Relaxation keeps the first predecessor that produced the maximum
    distance, so ties resolve by edge discovery order.
    """
    policy = policy or CriticalPathPolicy()
    if not graph.nodes:
        return CriticalPathResult()

    dist: dict[str, float] = {
        tid: task_duration(graph, tid, durations, policy.fallback_duration_hours)
        for tid in graph.nodes
    }
    pred: dict[str, Optional[str]] = {tid: None for tid in graph.nodes}

    order, _unresolved = topological_order(graph)
    for tid in order:
        for dependent_id in graph.nodes[tid].dependents:
            candidate = dist[tid] + task_duration(graph, dependent_id, durations, policy.fallback_duration_hours)
            if candidate > dist[dependent_id]:
                dist[dependent_id] = candidate
                pred[dependent_id] = tid

    end_id: Optional[str] = None
    for tid in order:
        if end_id is None or dist[tid] > dist[end_id]:
            end_id = tid

    path: list[str] = []
    seen: set[str] = set()
    current = end_id
    while current is not None and current not in seen:
        seen.add(current)
        path.append(current)
        current = pred[current]
    path.reverse()

    bottlenecks = sorted(
        (
            node for node in graph.nodes.values()
            if not node.task.is_done and len(node.dependents) >= policy.bottleneck_threshold
        ),
        key=lambda n: (-len(n.dependents), n.id),
    )

    result = CriticalPathResult(
        path=path,
        total_duration=dist[end_id] if end_id is not None else 0.0,
        starting_tasks=list(graph.roots),
        ending_tasks=list(graph.leaves),
        bottlenecks=[n.id for n in bottlenecks],
        dependency_count=len(graph.edges),
        order=order,
    )
    logger.debug(
        "Critical path over {} task(s): {} ({}h)",
        len(graph.nodes), result.path, result.total_duration,
    )
    return result
