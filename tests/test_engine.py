"""End-to-end tests for the optimization engine (no database involved)."""

from __future__ import annotations

import asyncio
import copy

import pytest

from contextforge.errors import InvalidOptimizationRequest
from contextforge.optimizer.engine import STRATEGY_ORDER, optimize_graph, validate_strategies
from contextforge.optimizer.graph import PipelineGraph


def _run(graph: PipelineGraph, kind: str = "auto", strategies=()):
    return asyncio.run(optimize_graph(graph, kind, strategies))


def _graph(nodes, edges) -> PipelineGraph:
    return PipelineGraph.from_payload(nodes, edges)


PIPELINE_NODES = [
    {"id": "in", "type": "input", "data": {"label": "User question"}, "position": {"x": 0, "y": 0}},
    {
        "id": "p1",
        "type": "prompt-template",
        "data": {"template": "Please kindly summarize this document for the user", "variables": ["doc"]},
    },
    {
        "id": "p2",
        "type": "prompt-template",
        "data": {"template": "Summarize this document for the user", "variables": ["user"]},
    },
    {"id": "mem-1", "type": "memory-store", "data": {"maxTokens": 8000, "ttl": 30}},
    {"id": "out", "type": "output", "data": {"label": "Answer"}},
]
PIPELINE_EDGES = [
    {"id": "e1", "source": "in", "target": "p1"},
    {"id": "e2", "source": "in", "target": "p2"},
    {"id": "e3", "source": "p1", "target": "mem-1"},
    {"id": "e4", "source": "mem-1", "target": "out"},
]


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_template_consolidation_leaves_one_prompt(self) -> None:
        graph = _graph(PIPELINE_NODES, PIPELINE_EDGES)
        outcome = _run(graph, strategies=["template_consolidation"])
        prompts = [n for n in outcome.graph.nodes if n.type == "prompt-template"]
        assert len(prompts) == 1
        assert len(outcome.graph.nodes) == len(PIPELINE_NODES) - 1
        assert outcome.strategies_applied == ["template_consolidation"]
        assert "Consolidated 1 duplicate templates" in outcome.details
        assert outcome.node_reduction == 1

    def test_consolidation_reports_dangling_edges(self) -> None:
        outcome = _run(_graph(PIPELINE_NODES, PIPELINE_EDGES), strategies=["template_consolidation"])
        # e2 still targets the removed p2.
        assert "1 edges reference consolidated nodes" in outcome.details

    def test_stale_edge_count_ignores_preexisting_dangling_edges(self) -> None:
        nodes = [
            {"id": "p1", "type": "prompt-template", "data": {"template": "Summarize the report"}},
            {"id": "p2", "type": "prompt-template", "data": {"template": "Summarize the report"}},
        ]
        edges = [{"source": "p1", "target": "ghost"}, {"source": "ghost2", "target": "p1"}]
        outcome = _run(_graph(nodes, edges), strategies=["template_consolidation"])
        assert outcome.details == ["Consolidated 1 duplicate templates"]

    def test_stale_edge_count_only_counts_removed_nodes(self) -> None:
        edges = PIPELINE_EDGES + [{"source": "out", "target": "ghost"}]
        outcome = _run(_graph(PIPELINE_NODES, edges), strategies=["template_consolidation"])
        assert outcome.details == [
            "Consolidated 1 duplicate templates",
            "1 edges reference consolidated nodes",
        ]

    def test_isolated_node_pruned(self) -> None:
        nodes = PIPELINE_NODES + [{"id": "orphan", "type": "processor", "data": {}}]
        outcome = _run(_graph(nodes, PIPELINE_EDGES), strategies=["node_pruning"])
        assert "orphan" not in {n.id for n in outcome.graph.nodes}
        assert outcome.node_reduction >= 1
        assert outcome.strategies_applied == ["node_pruning"]
        assert "Removed 1 unnecessary nodes" in outcome.details

    def test_memory_parameters_clamped(self) -> None:
        outcome = _run(_graph(PIPELINE_NODES, PIPELINE_EDGES), strategies=["parameter_optimization"])
        mem = next(n for n in outcome.graph.nodes if n.id == "mem-1")
        assert mem.data["maxTokens"] == 2000
        assert mem.data["ttl"] == 30
        assert any("mem-1" in d for d in outcome.details)
        assert outcome.strategies_applied == ["parameter_optimization"]

    def test_no_strategies_is_a_structural_no_op(self) -> None:
        nodes, edges = copy.deepcopy(PIPELINE_NODES), copy.deepcopy(PIPELINE_EDGES)
        outcome = _run(_graph(nodes, edges), strategies=[])
        out_nodes, out_edges = outcome.graph.to_payload()
        assert out_nodes == PIPELINE_NODES
        assert out_edges == PIPELINE_EDGES
        assert outcome.strategies_applied == []
        assert outcome.token_savings_percent == 0
        assert outcome.performance_improvement_percent == 0
        assert outcome.before == outcome.after


# ---------------------------------------------------------------------------
# Engine behaviour
# ---------------------------------------------------------------------------

class TestOptimizeGraph:
    def test_compression_reduces_tokens(self) -> None:
        outcome = _run(_graph(PIPELINE_NODES, PIPELINE_EDGES), strategies=["text_compression"])
        p1 = next(n for n in outcome.graph.nodes if n.id == "p1")
        assert p1.template == "summarize this document for the user"
        assert outcome.token_savings_percent > 0
        assert any(d.startswith("Compressed template in p1:") for d in outcome.details)

    def test_compression_listed_even_without_changes(self) -> None:
        nodes = [{"id": "p", "type": "prompt-template", "data": {"template": "Summarize"}}]
        outcome = _run(_graph(nodes, []), strategies=["text_compression"])
        assert outcome.strategies_applied == ["text_compression"]
        assert outcome.details == []

    def test_other_strategies_listed_only_when_effective(self) -> None:
        nodes = [{"id": "a", "type": "processor", "data": {}}, {"id": "b", "type": "output", "data": {}}]
        edges = [{"source": "a", "target": "b"}]
        outcome = _run(
            _graph(nodes, edges),
            strategies=["template_consolidation", "node_pruning", "parameter_optimization"],
        )
        assert outcome.strategies_applied == []

    def test_fixed_order_regardless_of_request_order(self) -> None:
        nodes = PIPELINE_NODES + [{"id": "orphan", "type": "processor", "data": {}}]
        outcome = _run(_graph(nodes, PIPELINE_EDGES), strategies=list(reversed(STRATEGY_ORDER)))
        assert outcome.strategies_applied == list(STRATEGY_ORDER)

    def test_performance_score_is_weighted_blend(self) -> None:
        nodes = PIPELINE_NODES + [{"id": "orphan", "type": "processor", "data": {}}]
        outcome = _run(_graph(nodes, PIPELINE_EDGES), strategies=list(STRATEGY_ORDER))
        expected = 0.6 * outcome.token_savings_percent + 0.4 * outcome.node_savings_percent
        assert outcome.performance_improvement_percent == pytest.approx(expected)

    def test_input_graph_untouched(self) -> None:
        graph = _graph(copy.deepcopy(PIPELINE_NODES), copy.deepcopy(PIPELINE_EDGES))
        _run(graph, "aggressive", list(STRATEGY_ORDER))
        assert graph.to_payload() == (PIPELINE_NODES, PIPELINE_EDGES)

    def test_improvements_dict(self) -> None:
        outcome = _run(_graph(PIPELINE_NODES, PIPELINE_EDGES), strategies=["template_consolidation"])
        improvements = outcome.improvements()
        assert set(improvements) == {
            "tokenSavingsPercent",
            "performanceImprovementPercent",
            "nodeReduction",
            "details",
        }
        assert improvements["nodeReduction"] == 1

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(InvalidOptimizationRequest):
            _run(_graph([], []), strategies=["quantum_annealing"])

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(InvalidOptimizationRequest):
            _run(_graph([], []), kind="turbo")

    def test_validate_strategies_orders_and_dedupes(self) -> None:
        assert validate_strategies(["node_pruning", "text_compression", "node_pruning"]) == [
            "text_compression",
            "node_pruning",
        ]

