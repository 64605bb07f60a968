"""Text renderings of a dependency graph: depth tree, Graphviz DOT, ASCII."""

from __future__ import annotations

from typing import Optional

from ..model import DependencyType
from .builder import DependencyGraph

FORMATS = ("tree", "dot", "ascii")

_STATUS_ICONS = {
    "todo": "⭕",
    "in_progress": "🔄",
    "done": "✅",
    "blocked": "🚫",
    "archived": "📦",
}

_STATUS_COLORS = {
    "todo": "lightblue",
    "in_progress": "yellow",
    "done": "lightgreen",
    "blocked": "red",
    "archived": "gray",
}


def status_icon(status: str) -> str:
    return _STATUS_ICONS.get(status, "❓")


def priority_icon(priority: Optional[int]) -> str:
    if not priority:
        return "📝"
    if priority >= 8:
        return "🔥"
    if priority >= 6:
        return "⚡"
    if priority >= 4:
        return "📈"
    return "📝"


def render_graph(graph: DependencyGraph, fmt: str = "tree", *, show_details: bool = False) -> str:
    """Render *graph* in one of :data:`FORMATS`."""
    if fmt not in FORMATS:
        raise ValueError(f"Unknown format '{fmt}'; expected one of {list(FORMATS)}")
    if not graph.nodes:
        return "No tasks found."
    if not graph.edges:
        return "No dependencies found."
    if fmt == "dot":
        return render_dot(graph, show_details=show_details)
    if fmt == "ascii":
        return render_ascii(graph)
    return render_tree(graph, show_details=show_details)


def render_tree(graph: DependencyGraph, *, show_details: bool = False) -> str:
    levels: dict[int, list[str]] = {}
    for node in graph:
        levels.setdefault(node.depth, []).append(node.id)

    lines = ["🌳 Task Dependency Tree", ""]
    for depth in sorted(levels):
        lines.append(f"Level {depth}:")
        indent = "  " * depth
        for tid in levels[depth]:
            node = graph.nodes[tid]
            task = node.task
            lines.append(
                f"{indent}{status_icon(task.status.value)} {priority_icon(task.priority)} {task.title} ({task.id})"
            )
            if show_details:
                if task.assignee:
                    lines.append(f"{indent}    👤 Assigned to: {task.assignee}")
                if task.due_date:
                    lines.append(f"{indent}    📅 Due: {task.due_date}")
                if node.dependencies:
                    lines.append(f"{indent}    🔗 Depends on: {len(node.dependencies)} task(s)")
                if node.dependents:
                    lines.append(f"{indent}    📤 Blocks: {len(node.dependents)} task(s)")
        lines.append("")

    lines.extend([
        "📊 Summary:",
        f"   Total tasks: {len(graph.nodes)}",
        f"   Dependencies: {len(graph.edges)}",
        f"   Root tasks: {len(graph.roots)}",
        f"   Leaf tasks: {len(graph.leaves)}",
        f"   Max depth: {graph.max_depth}",
    ])
    return "\n".join(lines) + "\n"


def _dot_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def render_dot(graph: DependencyGraph, *, show_details: bool = False) -> str:
    lines = [
        "digraph TaskDependencies {",
        "  rankdir=TB;",
        "  node [shape=box, style=rounded];",
        "",
    ]
    for node in graph:
        task = node.task
        label = _dot_escape(task.title)
        if show_details:
            label += f"\\n{task.status.value}\\nPriority: {task.priority}"
        color = _STATUS_COLORS.get(task.status.value, "white")
        lines.append(f'  "{task.id}" [label="{label}", fillcolor="{color}", style=filled];')
    lines.append("")
    for edge in graph.edges:
        blocking = edge.dependency_type == DependencyType.BLOCKS
        style = "solid" if blocking else "dashed"
        color = "red" if blocking else "blue"
        lines.append(f'  "{edge.depends_on_task_id}" -> "{edge.task_id}" [style={style}, color={color}];')
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_ascii(graph: DependencyGraph) -> str:
    out = ["📊 Task Dependencies (ASCII Grid)", ""]
    for root_id in graph.roots:
        _subtree(graph, root_id, "", "", set(), out)
    return "\n".join(out) + "\n"


def _subtree(
    graph: DependencyGraph,
    task_id: str,
    lead: str,
    prefix: str,
    path: set[str],
    out: list[str],
) -> None:
    if task_id in path:
        out.append(f"{lead}🔄 [CYCLE] {task_id}")
        return
    node = graph.nodes[task_id]
    task = node.task
    out.append(f"{lead}{status_icon(task.status.value)} {priority_icon(task.priority)} {task.title}")
    path.add(task_id)
    for index, dependent_id in enumerate(node.dependents):
        last = index == len(node.dependents) - 1
        connector = "└── " if last else "├── "
        child_prefix = prefix + ("    " if last else "│   ")
        _subtree(graph, dependent_id, prefix + connector, child_prefix, path, out)
    path.discard(task_id)
