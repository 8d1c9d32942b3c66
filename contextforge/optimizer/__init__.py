"""Blueprint optimizer: metrics, compression, consolidation, pruning, parameter tuning.

Public re-exports so callers can write::

    from contextforge.optimizer import PipelineGraph, optimize_graph
"""

from contextforge.optimizer.analysis import AnalysisReport, analyze_graph, build_report
from contextforge.optimizer.engine import STRATEGY_ORDER, optimize_graph
from contextforge.optimizer.graph import PipelineEdge, PipelineGraph, PipelineNode
from contextforge.optimizer.metrics import OptimizationMetrics, calculate_metrics

__all__ = [
    "STRATEGY_ORDER",
    "AnalysisReport",
    "OptimizationMetrics",
    "PipelineEdge",
    "PipelineGraph",
    "PipelineNode",
    "analyze_graph",
    "build_report",
    "calculate_metrics",
    "optimize_graph",
]
