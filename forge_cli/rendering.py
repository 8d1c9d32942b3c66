"""Text rendering helpers for the CLI."""

from __future__ import annotations

from typing import Any

from contextforge.optimizer.graph import PipelineGraph

_METRIC_ROWS = [
    ("nodeCount", "Nodes"),
    ("edgeCount", "Edges"),
    ("totalTokens", "Est. tokens"),
    ("averagePromptLength", "Avg prompt chars"),
    ("duplicateTemplates", "Duplicate templates"),
    ("unusedNodes", "Unused nodes"),
]


def _fmt(value: Any) -> str:
    return f"{value:.1f}" if isinstance(value, float) else str(value)


def render_metrics(before: dict[str, Any], after: dict[str, Any] | None = None) -> str:
    """Render one metrics dict, or a before/after pair, as aligned columns."""
    lines = []
    if after is None:
        for key, label in _METRIC_ROWS:
            lines.append(f"  {label:<20} {_fmt(before.get(key, 0)):>10}")
        return "\n".join(lines)

    lines.append(f"  {'':<20} {'before':>10} {'after':>10}")
    for key, label in _METRIC_ROWS:
        lines.append(
            f"  {label:<20} {_fmt(before.get(key, 0)):>10} {_fmt(after.get(key, 0)):>10}"
        )
    return "\n".join(lines)


def _icon(node_type: str) -> str:
    return {
        "input": "📥",
        "prompt-template": "📝",
        "rag-retriever": "🔎",
        "memory-store": "🧠",
        "state-tracker": "📊",
        "processor": "⚙️",
        "output": "📤",
        "output-parser": "📤",
    }.get(node_type, "•")


def render_graph(graph: PipelineGraph) -> str:
    """Render a pipeline graph as ASCII trees, one per root.

    Roots are nodes with no inbound edge; nodes already printed are marked
    instead of being expanded again, so cycles terminate.
    """
    adj: dict[str, list[str]] = {}
    inbound: set[str] = set()
    for e in graph.edges:
        adj.setdefault(e.source, []).append(e.target)
        inbound.add(e.target)

    node_map = {n.id: n for n in graph.nodes}
    roots = [n.id for n in graph.nodes if n.id not in inbound] or [n.id for n in graph.nodes[:1]]
    lines: list[str] = []
    visited: set[str] = set()

    def _label(node_id: str) -> str:
        node = node_map.get(node_id)
        if node is None:
            return f"? {node_id} (missing)"
        title = node.data.get("label") or node.id
        return f"{_icon(node.type)} {title} [{node.type}]"

    def _visit(node_id: str, prefix: str, is_last: bool, is_root: bool) -> None:
        connector = "" if is_root else ("└── " if is_last else "├── ")
        if node_id in visited:
            lines.append(f"{prefix}{connector}↺ {node_id}")
            return
        visited.add(node_id)
        lines.append(f"{prefix}{connector}{_label(node_id)}")
        children = adj.get(node_id, [])
        child_prefix = prefix if is_root else prefix + ("    " if is_last else "│   ")
        for i, child in enumerate(children):
            _visit(child, child_prefix, i == len(children) - 1, False)

    for root in roots:
        _visit(root, "", True, True)
    for node in graph.nodes:
        if node.id not in visited:
            _visit(node.id, "", True, True)
    return "\n".join(lines)


_SEVERITY_ICON = {"high": "🔴", "medium": "🟡", "low": "🟢"}


def render_suggestions(report: dict[str, Any]) -> str:
    """Render the suggestion list and its summary from an analysis report."""
    suggestions = report.get("suggestions", [])
    if not suggestions:
        return "✅ No suggestions."

    lines = []
    for s in suggestions:
        icon = _SEVERITY_ICON.get(s["severity"], "•")
        target = f" ({s['nodeId']})" if s.get("nodeId") else ""
        lines.append(f"  {icon} [{s['severity']}] {s['title']}{target}")
        lines.append(f"      {s['before']} → {s['after']}")

    summary = report["summary"]
    lines.append(
        f"[analyze] {summary['totalSuggestions']} suggestions: "
        f"~{summary['totalTokenReduction']:.0f} tokens, "
        f"${summary['totalCostSavings']:.4f} per run, "
        f"+{summary['totalPerformanceGain']:.0f}% performance"
    )
    return "\n".join(lines)
