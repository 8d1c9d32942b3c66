"""Run the requested optimization passes over a pipeline graph.

Passes always run in the order compression → consolidation → pruning →
parameter tuning, whatever order the caller lists them in.  The engine works
on a copy; the caller's graph is never modified.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from contextforge.config import settings
from contextforge.errors import InvalidOptimizationRequest
from contextforge.optimizer.compression import compress_template, compression_level_for
from contextforge.optimizer.consolidation import consolidate_templates
from contextforge.optimizer.graph import PROMPT_TEMPLATE, PipelineGraph, PipelineNode
from contextforge.optimizer.metrics import OptimizationMetrics, calculate_metrics
from contextforge.optimizer.parameters import optimize_parameters
from contextforge.optimizer.pruning import prune_nodes

TEXT_COMPRESSION = "text_compression"
TEMPLATE_CONSOLIDATION = "template_consolidation"
NODE_PRUNING = "node_pruning"
PARAMETER_OPTIMIZATION = "parameter_optimization"

STRATEGY_ORDER = (TEXT_COMPRESSION, TEMPLATE_CONSOLIDATION, NODE_PRUNING, PARAMETER_OPTIMIZATION)


@dataclass
class OptimizationOutcome:
    graph: PipelineGraph
    before: OptimizationMetrics
    after: OptimizationMetrics
    strategies_applied: list[str] = field(default_factory=list)
    details: list[str] = field(default_factory=list)
    token_savings_percent: float = 0.0
    node_savings_percent: float = 0.0
    performance_improvement_percent: float = 0.0
    execution_time_ms: int = 0

    @property
    def node_reduction(self) -> int:
        return self.before.node_count - self.after.node_count

    def improvements(self) -> dict[str, Any]:
        return {
            "tokenSavingsPercent": self.token_savings_percent,
            "performanceImprovementPercent": self.performance_improvement_percent,
            "nodeReduction": self.node_reduction,
            "details": list(self.details),
        }


def validate_strategies(strategies: Iterable[str]) -> list[str]:
    """Reject unknown names; return the request in execution order."""
    requested = set(strategies)
    unknown = requested.difference(STRATEGY_ORDER)
    if unknown:
        raise InvalidOptimizationRequest(
            f"Unknown strategies {sorted(unknown)}; expected a subset of {list(STRATEGY_ORDER)}"
        )
    return [s for s in STRATEGY_ORDER if s in requested]


def savings_percent(before: float, after: float) -> float:
    return (before - after) / before * 100 if before > 0 else 0.0


async def _compress_node(node: PipelineNode, level: float) -> tuple[PipelineNode, str | None]:
    if node.type != PROMPT_TEMPLATE or not node.template:
        return node, None
    original = node.template
    compressed = await asyncio.to_thread(compress_template, original, level)
    if compressed == original:
        return node, None
    detail = f"Compressed template in {node.id}: {len(original)} → {len(compressed)} chars"
    return node.with_data(template=compressed), detail


async def compress_nodes(
    nodes: list[PipelineNode], level: float
) -> tuple[list[PipelineNode], list[str]]:
    """Compress every prompt template concurrently, keeping node order."""
    results = await asyncio.gather(*(_compress_node(n, level) for n in nodes))
    return [node for node, _ in results], [d for _, d in results if d]


async def optimize_graph(
    graph: PipelineGraph,
    optimization_type: str = "auto",
    strategies: Iterable[str] = (),
) -> OptimizationOutcome:
    """Apply *strategies* to a copy of *graph* and measure the effect.

    ``text_compression`` is reported as applied whenever requested; the other
    passes are reported only when they changed something.

    ``performance_improvement_percent`` is a weighted blend of token and node
    savings.  It is a placeholder score, not a measured speed-up.

    Raises:
        InvalidOptimizationRequest: unknown optimization type or strategy.
    """
    started = time.perf_counter()
    level = compression_level_for(optimization_type)
    ordered = validate_strategies(strategies)

    work = graph.copy()
    before = calculate_metrics(work.nodes, work.edges)
    nodes, edges = work.nodes, work.edges
    applied: list[str] = []
    details: list[str] = []

    if TEXT_COMPRESSION in ordered:
        nodes, compressed = await compress_nodes(nodes, level)
        details.extend(compressed)
        applied.append(TEXT_COMPRESSION)

    if TEMPLATE_CONSOLIDATION in ordered:
        result = consolidate_templates(nodes, edges)
        nodes, edges = result.nodes, result.edges
        if result.consolidations:
            details.append(f"Consolidated {result.consolidations} duplicate templates")
            applied.append(TEMPLATE_CONSOLIDATION)
            removed = {removed_id for _, removed_id in result.merged}
            stale = sum(1 for e in edges if e.source in removed or e.target in removed)
            if stale:
                details.append(f"{stale} edges reference consolidated nodes")

    if NODE_PRUNING in ordered:
        pruned = prune_nodes(nodes, edges)
        nodes, edges = pruned.nodes, pruned.edges
        if pruned.pruned_count:
            details.append(f"Removed {pruned.pruned_count} unnecessary nodes")
            applied.append(NODE_PRUNING)

    if PARAMETER_OPTIMIZATION in ordered:
        params = optimize_parameters(nodes)
        nodes = params.nodes
        if params.optimizations:
            details.extend(params.optimizations)
            applied.append(PARAMETER_OPTIMIZATION)

    after = calculate_metrics(nodes, edges)
    token_savings = savings_percent(before.total_tokens, after.total_tokens)
    node_savings = savings_percent(before.node_count, after.node_count)

    return OptimizationOutcome(
        graph=PipelineGraph(nodes=nodes, edges=edges),
        before=before,
        after=after,
        strategies_applied=applied,
        details=details,
        token_savings_percent=token_savings,
        node_savings_percent=node_savings,
        performance_improvement_percent=(
            settings.token_savings_weight * token_savings
            + settings.node_savings_weight * node_savings
        ),
        execution_time_ms=int((time.perf_counter() - started) * 1000),
    )
