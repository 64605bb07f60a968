"""Impact, upstream/downstream and parallel-execution analysis."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from ..config import ImpactPolicy
from ..constants import FALLBACK_DURATION_HOURS, MAX_TRAVERSAL_ITERATIONS
from ..errors import TaskNotFoundError
from ..model import TaskStatus
from .builder import DependencyGraph


@dataclass
class ImpactResult:
    task_id: str
    direct_dependents: list[str] = field(default_factory=list)
    indirect_dependents: list[str] = field(default_factory=list)
    upstream: list[str] = field(default_factory=list)
    impact_score: float = 0.0
    risk_level: str = "low"
    recommendations: list[str] = field(default_factory=list)

    @property
    def total_impact(self) -> int:
        return len(self.direct_dependents) + len(self.indirect_dependents)

    @property
    def would_block_count(self) -> int:
        return len(self.direct_dependents)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "direct_dependents": list(self.direct_dependents),
            "indirect_dependents": list(self.indirect_dependents),
            "upstream": list(self.upstream),
            "impact_score": self.impact_score,
            "risk_level": self.risk_level,
            "total_impact": self.total_impact,
            "would_block_count": self.would_block_count,
            "recommendations": list(self.recommendations),
        }


# ---------------------------------------------------------------------------
# Traversals
# ---------------------------------------------------------------------------

def _require(graph: DependencyGraph, task_id: str) -> None:
    if task_id not in graph:
        raise TaskNotFoundError(task_id)


def _reachable(
    graph: DependencyGraph,
    task_id: str,
    neighbours: Callable[[str], list[str]],
    max_iterations: int,
) -> list[str]:
    """BFS from *task_id* (excluded from the result), visiting each node once."""
    visited: set[str] = {task_id}
    order: list[str] = []
    queue: deque[str] = deque(neighbours(task_id))
    iterations = 0
    while queue:
        iterations += 1
        if iterations > max_iterations:
            logger.warning("Traversal from {} hit the iteration cap; result is partial", task_id)
            break
        current = queue.popleft()
        if current in visited or current not in graph:
            continue
        visited.add(current)
        order.append(current)
        queue.extend(n for n in neighbours(current) if n not in visited)
    return order


def downstream_ids(graph: DependencyGraph, task_id: str, *, max_iterations: int = MAX_TRAVERSAL_ITERATIONS) -> list[str]:
    """Every task that transitively depends on *task_id*."""
    _require(graph, task_id)
    return _reachable(graph, task_id, graph.dependents_of, max_iterations)


def upstream_ids(graph: DependencyGraph, task_id: str, *, max_iterations: int = MAX_TRAVERSAL_ITERATIONS) -> list[str]:
    """Every task that must finish before *task_id* can start."""
    _require(graph, task_id)
    return _reachable(graph, task_id, graph.dependencies_of, max_iterations)


# ---------------------------------------------------------------------------
# Impact
# ---------------------------------------------------------------------------

def impact_score(
    direct: int,
    indirect: int,
    priority: int,
    due: Optional[date],
    today: date,
    policy: ImpactPolicy,
) -> float:
    score = policy.direct_weight * direct + policy.indirect_weight * indirect
    score *= 1 + priority / policy.priority_divisor
    if due is not None:
        days_left = (due - today).days
        if days_left < 0:
            score *= policy.overdue_multiplier
        elif days_left <= policy.due_soon_days:
            score *= policy.due_soon_multiplier
    return round(score, 2)


def risk_level(score: float, policy: ImpactPolicy) -> str:
    if score > policy.high_risk_threshold:
        return "high"
    if score > policy.medium_risk_threshold:
        return "medium"
    return "low"


def analyze_impact(
    graph: DependencyGraph,
    task_id: str,
    *,
    today: Optional[date] = None,
    policy: Optional[ImpactPolicy] = None,
    max_iterations: int = MAX_TRAVERSAL_ITERATIONS,
) -> ImpactResult:
    """Downstream/upstream reach of *task_id* and its impact score.

    Raises:
        TaskNotFoundError: if *task_id* is not in the graph.
    """
    _require(graph, task_id)
    policy = policy or ImpactPolicy()
    today = today or date.today()
    task = graph.task(task_id)

    direct = graph.dependents_of(task_id)
    direct_set = set(direct)
    indirect = [
        tid for tid in _reachable(graph, task_id, graph.dependents_of, max_iterations)
        if tid not in direct_set
    ]
    upstream = _reachable(graph, task_id, graph.dependencies_of, max_iterations)

    due = None if task.is_done else task.due
    score = impact_score(len(direct), len(indirect), task.priority, due, today, policy)
    result = ImpactResult(
        task_id=task_id,
        direct_dependents=direct,
        indirect_dependents=indirect,
        upstream=upstream,
        impact_score=score,
        risk_level=risk_level(score, policy),
    )
    result.recommendations = _recommendations(result, task.status)
    logger.debug(
        "Impact of {}: direct={} indirect={} score={} risk={}",
        task_id, len(direct), len(indirect), score, result.risk_level,
    )
    return result


def _recommendations(result: ImpactResult, status: TaskStatus) -> list[str]:
    if result.total_impact == 0:
        return []
    notes: list[str] = []
    if result.would_block_count > 3:
        notes.append("High blocking risk: consider breaking this task into smaller parts")
    if status == TaskStatus.BLOCKED:
        notes.append("Currently blocked: prioritize unblocking this task")
    if result.total_impact > 5:
        notes.append("High impact task: monitor progress closely")
    return notes


# ---------------------------------------------------------------------------
# Parallel grouping
# ---------------------------------------------------------------------------

def parallel_groups(
    graph: DependencyGraph,
    task_ids: Iterable[str],
    *,
    max_iterations: int = MAX_TRAVERSAL_ITERATIONS,
) -> list[list[str]]:
    """Partition *task_ids* into groups with no dependency relation inside.

    Greedy: seed a group with the next unprocessed task, then add every other
    unprocessed task that is neither upstream nor downstream of any member.
    This is an approximation and does not minimise the number of groups.
    """
    candidates = list(dict.fromkeys(task_ids))
    for tid in candidates:
        _require(graph, tid)
    upstream = {
        tid: set(_reachable(graph, tid, graph.dependencies_of, max_iterations))
        for tid in candidates
    }

    def _conflict(a: str, b: str) -> bool:
        return a in upstream[b] or b in upstream[a]

    groups: list[list[str]] = []
    processed: set[str] = set()
    for seed in candidates:
        if seed in processed:
            continue
        group = [seed]
        processed.add(seed)
        for other in candidates:
            if other in processed:
                continue
            if any(_conflict(other, member) for member in group):
                continue
            group.append(other)
            processed.add(other)
        groups.append(group)
    return groups


# ---------------------------------------------------------------------------
# Depth / earliest start
# ---------------------------------------------------------------------------

def _evaluate_upstream(
    graph: DependencyGraph,
    task_id: str,
    combine: Callable[[str, list[str], dict[str, Any]], Any],
    memo: dict[str, Any],
    max_iterations: int,
) -> Any:
    """Post-order walk over the upstream graph with memoisation.

    Dependencies that are still on the current path (a cycle in corrupted
    data) are ignored rather than followed.
    """
    stack: list[tuple[str, bool]] = [(task_id, False)]
    on_path: set[str] = set()
    iterations = 0
    while stack:
        iterations += 1
        if iterations > max_iterations:
            logger.warning("Upstream walk from {} hit the iteration cap; result is partial", task_id)
            break
        node, expanded = stack.pop()
        if node in memo:
            continue
        deps = [d for d in graph.dependencies_of(node) if d in graph]
        if expanded:
            on_path.discard(node)
            memo[node] = combine(node, [d for d in deps if d in memo], memo)
            continue
        on_path.add(node)
        stack.append((node, True))
        for dep in deps:
            if dep not in memo and dep not in on_path:
                stack.append((dep, False))
    return memo.get(task_id, combine(task_id, [], memo))


def dependency_depth(graph: DependencyGraph, task_id: str, *, max_iterations: int = MAX_TRAVERSAL_ITERATIONS) -> int:
    """Length of the longest depends-on chain below *task_id* (0 for roots)."""
    _require(graph, task_id)

    def _combine(_node: str, deps: list[str], memo: dict[str, Any]) -> int:
        return max((memo[d] + 1 for d in deps), default=0)

    return _evaluate_upstream(graph, task_id, _combine, {}, max_iterations)


def duration_days(hours: Optional[float], hours_per_day: float, fallback_hours: float = FALLBACK_DURATION_HOURS) -> int:
    effective = fallback_hours if hours is None else hours
    return max(0, math.ceil(effective / hours_per_day))


def earliest_start_dates(
    graph: DependencyGraph,
    project_start: date,
    task_ids: Optional[Iterable[str]] = None,
    *,
    policy: Optional[ImpactPolicy] = None,
    fallback_hours: float = FALLBACK_DURATION_HOURS,
    max_iterations: int = MAX_TRAVERSAL_ITERATIONS,
) -> dict[str, date]:
    """Earliest start per task: roots start on *project_start*; others on
    the latest ``predecessor start + predecessor duration``."""
    policy = policy or ImpactPolicy()
    targets = list(task_ids) if task_ids is not None else list(graph.nodes)
    memo: dict[str, Any] = {}

    def _combine(_node: str, deps: list[str], memo: dict[str, Any]) -> date:
        starts = [
            memo[d] + timedelta(days=duration_days(graph.task(d).estimated_hours, policy.hours_per_day, fallback_hours))
            for d in deps
        ]
        return max(starts, default=project_start)

    out: dict[str, date] = {}
    for tid in targets:
        _require(graph, tid)
        out[tid] = _evaluate_upstream(graph, tid, _combine, memo, max_iterations)
    return out
