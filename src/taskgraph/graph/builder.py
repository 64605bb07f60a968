"""Assemble an in-memory dependency graph from repository records."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from loguru import logger

from ..model import DependencyEdge, Task


@dataclass
class DependencyNode:
    task: Task
    dependencies: list[str] = field(default_factory=list)  # ids this task depends on
    dependents: list[str] = field(default_factory=list)  # ids that depend on this task
    depth: int = 0

    @property
    def id(self) -> str:
        return self.task.id


@dataclass
class DependencyGraph:
    """Directed graph where an edge ``a -> b`` means *a depends on b*.

    ``roots`` are tasks with no dependencies; ``leaves`` are tasks nothing
    depends on.  Both keep the order in which tasks were supplied.
    """

    nodes: dict[str, DependencyNode] = field(default_factory=dict)
    edges: list[DependencyEdge] = field(default_factory=list)
    roots: list[str] = field(default_factory=list)
    leaves: list[str] = field(default_factory=list)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[DependencyNode]:
        return iter(self.nodes.values())

    def get(self, task_id: str) -> Optional[DependencyNode]:
        return self.nodes.get(task_id)

    def task(self, task_id: str) -> Task:
        return self.nodes[task_id].task

    def dependencies_of(self, task_id: str) -> list[str]:
        node = self.nodes.get(task_id)
        return list(node.dependencies) if node else []

    def dependents_of(self, task_id: str) -> list[str]:
        node = self.nodes.get(task_id)
        return list(node.dependents) if node else []

    @property
    def max_depth(self) -> int:
        return max((n.depth for n in self.nodes.values()), default=0)


def build_graph(
    tasks: Iterable[Task],
    edges: Iterable[DependencyEdge],
    *,
    include_archived: bool = False,
) -> DependencyGraph:
    """Build a :class:`DependencyGraph` from task and edge records.

    Archived tasks are left out unless *include_archived* is set.  Edges whose
    endpoints are missing from *tasks* are skipped, and re-added edges between
    the same ordered pair collapse into one.
    """
    graph = DependencyGraph()
    for task in tasks:
        if not include_archived and not task.occupies_position:
            continue
        graph.nodes[task.id] = DependencyNode(task=task)

    seen: set[tuple[str, str]] = set()
    skipped = 0
    for edge in edges:
        task_node = graph.nodes.get(edge.task_id)
        dep_node = graph.nodes.get(edge.depends_on_task_id)
        if task_node is None or dep_node is None:
            skipped += 1
            continue
        if edge.key in seen:
            continue
        seen.add(edge.key)
        graph.edges.append(edge)
        task_node.dependencies.append(edge.depends_on_task_id)
        dep_node.dependents.append(edge.task_id)
    if skipped:
        logger.debug("Skipped {} edge(s) with endpoints outside the task set", skipped)

    graph.roots = [n.id for n in graph.nodes.values() if not n.dependencies]
    graph.leaves = [n.id for n in graph.nodes.values() if not n.dependents]
    _assign_depths(graph)
    return graph


def _assign_depths(graph: DependencyGraph) -> None:
    """depth(root) = 0; depth(n) = max(depth(dep)) + 1.

    A node is settled once all of its dependencies are; nodes never settled
    (only possible when the edge set already holds a cycle) stay at 0.
    """
    remaining = {tid: len(node.dependencies) for tid, node in graph.nodes.items()}
    queue: deque[str] = deque(graph.roots)
    settled: set[str] = set()
    while queue:
        tid = queue.popleft()
        if tid in settled:
            continue
        settled.add(tid)
        node = graph.nodes[tid]
        node.depth = max((graph.nodes[d].depth for d in node.dependencies), default=-1) + 1
        for dependent_id in node.dependents:
            remaining[dependent_id] -= 1
            if remaining[dependent_id] == 0:
                queue.append(dependent_id)

    unsettled = [tid for tid in graph.nodes if tid not in settled]
    if unsettled:
        logger.warning("Dependency cycle detected; depth defaults to 0 for {}", unsettled)
        for tid in unsettled:
            graph.nodes[tid].depth = 0
