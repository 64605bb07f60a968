"""Cycle detection over the depends-on edge set."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Optional

from loguru import logger

from ..constants import MAX_TRAVERSAL_ITERATIONS
from ..errors import SelfDependencyError
from ..model import DependencyEdge


def dependency_map(edges: Iterable[DependencyEdge]) -> dict[str, list[str]]:
    """``{task_id: [depends_on ids]}`` in edge order, duplicates dropped."""
    adj: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        targets = adj[edge.task_id]
        if edge.depends_on_task_id not in targets:
            targets.append(edge.depends_on_task_id)
    return adj


def find_path(
    edges: Iterable[DependencyEdge],
    start_id: str,
    target_id: str,
    *,
    max_iterations: int = MAX_TRAVERSAL_ITERATIONS,
) -> Optional[list[str]]:
    """Return a depends-on path ``start_id -> ... -> target_id`` or None."""
    adj = dependency_map(edges)
    parents: dict[str, Optional[str]] = {start_id: None}
    stack = [start_id]
    iterations = 0
    while stack:
        iterations += 1
        if iterations > max_iterations:
            logger.warning("Path search {} -> {} hit the iteration cap", start_id, target_id)
            return None
        current = stack.pop()
        if current == target_id:
            path = [current]
            while parents[path[-1]] is not None:
                path.append(parents[path[-1]])  # type: ignore[arg-type]
            path.reverse()
            return path
        for dep in reversed(adj.get(current, [])):
            if dep not in parents:
                parents[dep] = current
                stack.append(dep)
    return None


def would_create_cycle(
    edges: Iterable[DependencyEdge],
    task_id: str,
    depends_on_task_id: str,
    *,
    max_iterations: int = MAX_TRAVERSAL_ITERATIONS,
) -> bool:
    """Return True if adding ``task_id -> depends_on_task_id`` closes a cycle.

    The new edge closes a cycle exactly when ``task_id`` is already reachable
    from ``depends_on_task_id`` by following existing depends-on edges.

    Raises:
        SelfDependencyError: if both ids are the same (checked before any
            traversal).
    """
    if task_id == depends_on_task_id:
        raise SelfDependencyError(task_id)
    return find_path(edges, depends_on_task_id, task_id, max_iterations=max_iterations) is not None


def find_cycle(
    edges: Iterable[DependencyEdge],
    *,
    max_iterations: int = MAX_TRAVERSAL_ITERATIONS,
) -> Optional[list[str]]:
    """Full-graph check: return one cycle as ``[a, b, ..., a]`` or None."""
    adj = dependency_map(edges)
    nodes = sorted(set(adj) | {d for deps in adj.values() for d in deps})
    white, grey, black = 0, 1, 2
    color: dict[str, int] = {n: white for n in nodes}
    iterations = 0

    for root in nodes:
        if color[root] != white:
            continue
        # Stack of (node, index of next neighbour to visit)
        stack: list[tuple[str, int]] = [(root, 0)]
        color[root] = grey
        while stack:
            iterations += 1
            if iterations > max_iterations:
                logger.warning("Cycle scan hit the iteration cap after {} steps", max_iterations)
                return None
            node, idx = stack[-1]
            neighbours = adj.get(node, [])
            if idx < len(neighbours):
                stack[-1] = (node, idx + 1)
                nxt = neighbours[idx]
                if color[nxt] == grey:
                    path = [n for n, _ in stack]
                    return path[path.index(nxt):] + [nxt]
                if color[nxt] == white:
                    color[nxt] = grey
                    stack.append((nxt, 0))
            else:
                color[node] = black
                stack.pop()
    return None


def has_cycle(edges: Iterable[DependencyEdge]) -> bool:
    return find_cycle(edges) is not None
