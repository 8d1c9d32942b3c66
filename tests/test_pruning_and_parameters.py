"""Tests for node pruning and parameter clamping."""

from __future__ import annotations

from contextforge.optimizer.graph import PipelineEdge, PipelineNode
from contextforge.optimizer.parameters import optimize_parameters, over_limit
from contextforge.optimizer.pruning import prune_nodes


def _n(node_id: str, node_type: str = "processor", **data) -> PipelineNode:
    return PipelineNode(id=node_id, type=node_type, data=data)


def _e(source: str, target: str) -> PipelineEdge:
    return PipelineEdge(source=source, target=target, id=f"{source}->{target}")


# ---------------------------------------------------------------------------
# prune_nodes
# ---------------------------------------------------------------------------

class TestPruneNodes:
    def test_isolated_node_removed(self) -> None:
        nodes = [_n("in", "input"), _n("p", "prompt-template"), _n("out", "output"), _n("lonely")]
        edges = [_e("in", "p"), _e("p", "out")]
        result = prune_nodes(nodes, edges)
        assert [n.id for n in result.nodes] == ["in", "p", "out"]
        assert result.pruned_ids == ["lonely"]
        assert result.pruned_count == 1

    def test_sink_with_inbound_edge_kept(self) -> None:
        nodes = [_n("a"), _n("sink", "output")]
        result = prune_nodes(nodes, [_e("a", "sink")])
        assert result.pruned_count == 0

    def test_referenced_nodes_never_pruned_as_isolated(self) -> None:
        nodes = [_n(x) for x in "abcde"]
        edges = [_e("a", "b"), _e("c", "a"), _e("d", "d")]
        kept = {n.id for n in prune_nodes(nodes, edges).nodes}
        assert kept == {"a", "b", "c", "d"}

    def test_extra_memory_stores_removed_with_edges(self) -> None:
        nodes = [
            _n("in", "input"),
            _n("m1", "memory-store"),
            _n("m2", "memory-store"),
            _n("out", "output"),
        ]
        edges = [_e("in", "m1"), _e("in", "m2"), _e("m1", "out"), _e("m2", "out")]
        result = prune_nodes(nodes, edges)
        assert [n.id for n in result.nodes] == ["in", "m1", "out"]
        assert [(e.source, e.target) for e in result.edges] == [("in", "m1"), ("m1", "out")]
        assert result.pruned_ids == ["m2"]

    def test_isolated_memory_store_does_not_count_as_first(self) -> None:
        nodes = [_n("m0", "memory-store"), _n("m1", "memory-store"), _n("x")]
        result = prune_nodes(nodes, [_e("x", "m1")])
        assert [n.id for n in result.nodes] == ["m1", "x"]

    def test_inputs_not_mutated(self) -> None:
        nodes = [_n("a"), _n("b")]
        edges = [_e("a", "a")]
        prune_nodes(nodes, edges)
        assert len(nodes) == 2
        assert len(edges) == 1

    def test_empty_graph(self) -> None:
        result = prune_nodes([], [])
        assert result.nodes == [] and result.edges == [] and result.pruned_count == 0


# ---------------------------------------------------------------------------
# optimize_parameters
# ---------------------------------------------------------------------------

class TestOptimizeParameters:
    def test_memory_tokens_clamped(self) -> None:
        result = optimize_parameters([_n("mem-1", "memory-store", maxTokens=8000)])
        assert result.nodes[0].data["maxTokens"] == 2000
        assert result.optimizations == ["Reduced memory token limit for mem-1"]

    def test_memory_ttl_clamped(self) -> None:
        result = optimize_parameters([_n("mem-1", "memory-store", ttl=300)])
        assert result.nodes[0].data["ttl"] == 60
        assert "Optimized TTL for mem-1" in result.optimizations

    def test_rag_and_state_tracker(self) -> None:
        result = optimize_parameters(
            [_n("rag", "rag-retriever", maxResults=10), _n("st", "state-tracker", maxHistory=50)]
        )
        assert result.nodes[0].data["maxResults"] == 3
        assert result.nodes[1].data["maxHistory"] == 5
        assert len(result.optimizations) == 2

    def test_threshold_values_left_alone(self) -> None:
        nodes = [
            _n("m", "memory-store", maxTokens=4000, ttl=120),
            _n("r", "rag-retriever", maxResults=5),
            _n("s", "state-tracker", maxHistory=10),
        ]
        result = optimize_parameters(nodes)
        assert result.optimizations == []
        assert result.nodes == nodes

    def test_field_on_other_node_type_ignored(self) -> None:
        result = optimize_parameters([_n("p", "prompt-template", maxTokens=9000)])
        assert result.nodes[0].data["maxTokens"] == 9000

    def test_non_numeric_values_ignored(self) -> None:
        nodes = [_n("m", "memory-store", maxTokens="9000", ttl=True)]
        assert optimize_parameters(nodes).optimizations == []

    def test_other_data_kept_and_input_not_mutated(self) -> None:
        node = _n("m", "memory-store", maxTokens=9000, label="Memory")
        result = optimize_parameters([node])
        assert result.nodes[0].data["label"] == "Memory"
        assert node.data["maxTokens"] == 9000

    def test_over_limit_lists_rules(self) -> None:
        rules = over_limit(_n("m", "memory-store", maxTokens=9000, ttl=500))
        assert {r.field for r in rules} == {"maxTokens", "ttl"}
