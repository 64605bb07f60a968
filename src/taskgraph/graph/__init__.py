"""Dependency graph construction and analysis."""

from .builder import DependencyGraph, DependencyNode, build_graph
from .critical_path import CriticalPathResult, execution_batches, find_critical_path, topological_order
from .cycles import find_cycle, has_cycle, would_create_cycle
from .impact import (
    ImpactResult,
    analyze_impact,
    dependency_depth,
    downstream_ids,
    earliest_start_dates,
    parallel_groups,
    upstream_ids,
)
from .visualization import render_graph

__all__ = [
    "CriticalPathResult",
    "DependencyGraph",
    "DependencyNode",
    "ImpactResult",
    "analyze_impact",
    "build_graph",
    "dependency_depth",
    "downstream_ids",
    "earliest_start_dates",
    "execution_batches",
    "find_critical_path",
    "find_cycle",
    "has_cycle",
    "parallel_groups",
    "render_graph",
    "topological_order",
    "upstream_ids",
    "would_create_cycle",
]
