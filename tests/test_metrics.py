"""Tests for graph parsing and the metrics calculator."""

from __future__ import annotations

import pytest

from contextforge.optimizer.graph import PipelineEdge, PipelineGraph, PipelineNode
from contextforge.optimizer.metrics import calculate_metrics, estimate_tokens


def _node(node_id: str, node_type: str, **data) -> PipelineNode:
    return PipelineNode(id=node_id, type=node_type, data=data)


# ---------------------------------------------------------------------------
# PipelineGraph
# ---------------------------------------------------------------------------

class TestPipelineGraph:
    def test_round_trip_preserves_unknown_keys(self) -> None:
        nodes = [
            {
                "id": "n1",
                "type": "prompt-template",
                "position": {"x": 10, "y": 20},
                "data": {"template": "Hi {name}", "label": "Greet"},
            }
        ]
        edges = [{"id": "e1", "source": "n1", "target": "n2", "sourceHandle": "out"}]
        out_nodes, out_edges = PipelineGraph.from_payload(nodes, edges).to_payload()
        assert out_nodes == nodes
        assert out_edges == edges

    def test_round_trip_keeps_sparse_nodes_sparse(self) -> None:
        nodes = [
            {"id": "a", "type": "input"},
            {"id": 7, "data": {"label": "numbered"}},
            {"id": "c", "type": None, "data": None},
        ]
        edges = [{"source": 7, "target": "a"}]
        out_nodes, out_edges = PipelineGraph.from_payload(nodes, edges).to_payload()
        assert out_nodes == nodes
        assert out_edges == edges

    def test_changed_data_is_emitted(self) -> None:
        graph = PipelineGraph.from_payload([{"id": "m", "type": "memory-store"}], [])
        node = graph.nodes[0].with_data(maxTokens=2000)
        assert node.to_dict() == {"id": "m", "type": "memory-store", "data": {"maxTokens": 2000}}

    @pytest.mark.parametrize(
        "nodes,edges",
        [
            ([1], []),
            ([{"id": "a"}], ["a->b"]),
            ({"id": "a"}, []),
            ([{"id": "a"}], None),
            ([{"id": "a", "data": ["x"]}], []),
        ],
    )
    def test_malformed_shapes_raise_value_error(self, nodes, edges) -> None:
        with pytest.raises(ValueError):
            PipelineGraph.from_payload(nodes, edges)

    def test_duplicate_node_ids_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate node id"):
            PipelineGraph.from_payload([{"id": "a"}, {"id": "a"}], [])

    def test_edge_without_target_rejected(self) -> None:
        with pytest.raises(ValueError):
            PipelineGraph.from_payload([{"id": "a"}], [{"source": "a"}])

    def test_dangling_edges(self) -> None:
        graph = PipelineGraph.from_payload(
            [{"id": "a"}, {"id": "b"}],
            [{"source": "a", "target": "b"}, {"source": "a", "target": "ghost"}],
        )
        dangling = graph.dangling_edges()
        assert [(e.source, e.target) for e in dangling] == [("a", "ghost")]

    def test_copy_is_deep(self) -> None:
        graph = PipelineGraph.from_payload([{"id": "a", "data": {"template": "x"}}], [])
        clone = graph.copy()
        clone.nodes[0].data["template"] = "changed"
        assert graph.nodes[0].data["template"] == "x"


# ---------------------------------------------------------------------------
# estimate_tokens
# ---------------------------------------------------------------------------

class TestEstimateTokens:
    @pytest.mark.parametrize(
        "text,expected",
        [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)],
    )
    def test_quarter_length_rounded_up(self, text: str, expected: int) -> None:
        assert estimate_tokens(text) == expected

    def test_non_string_is_zero(self) -> None:
        assert estimate_tokens(None) == 0
        assert estimate_tokens(42) == 0


# ---------------------------------------------------------------------------
# calculate_metrics
# ---------------------------------------------------------------------------

class TestCalculateMetrics:
    def test_empty_graph_is_all_zero(self) -> None:
        m = calculate_metrics([], [])
        assert m.to_dict() == {
            "nodeCount": 0,
            "edgeCount": 0,
            "totalTokens": 0,
            "averagePromptLength": 0,
            "duplicateTemplates": 0,
            "unusedNodes": 0,
        }

    def test_tokens_from_template_label_and_description(self) -> None:
        nodes = [_node("p", "prompt-template", template="abcd" * 3, label="abcde", description="abc")]
        # 12 chars → 3, label 5 chars → 2, description 3 chars → 1
        assert calculate_metrics(nodes, []).total_tokens == 6

    def test_templates_on_other_node_types_are_ignored(self) -> None:
        nodes = [_node("r", "rag-retriever", template="abcdefgh")]
        m = calculate_metrics(nodes, [])
        assert m.total_tokens == 0
        assert m.average_prompt_length == 0

    def test_average_prompt_length(self) -> None:
        nodes = [
            _node("a", "prompt-template", template="x" * 10),
            _node("b", "prompt-template", template="y" * 30),
        ]
        assert calculate_metrics(nodes, []).average_prompt_length == pytest.approx(20.0)

    def test_exact_duplicate_templates_counted(self) -> None:
        nodes = [
            _node("a", "prompt-template", template="same"),
            _node("b", "prompt-template", template="same"),
            _node("c", "prompt-template", template="same"),
            _node("d", "prompt-template", template="different"),
        ]
        assert calculate_metrics(nodes, []).duplicate_templates == 2

    def test_unused_nodes_exclude_output_parsers_and_sources(self) -> None:
        nodes = [
            _node("in", "input"),
            _node("proc", "processor"),
            _node("parser", "output-parser"),
        ]
        edges = [PipelineEdge(source="in", target="parser")]
        m = calculate_metrics(nodes, edges)
        # "proc" never appears as a source; the parser is exempt.
        assert m.unused_nodes == 1
        assert m.node_count == 3
        assert m.edge_count == 1

    def test_counts_never_negative(self) -> None:
        nodes = [_node("a", "prompt-template", template="")]
        m = calculate_metrics(nodes, [])
        for value in m.to_dict().values():
            assert value >= 0
