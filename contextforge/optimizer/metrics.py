"""Before/after metrics for a pipeline graph."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from contextforge.optimizer.graph import OUTPUT_PARSER, PROMPT_TEMPLATE, PipelineEdge, PipelineNode


@dataclass(frozen=True)
class OptimizationMetrics:
    node_count: int = 0
    edge_count: int = 0
    total_tokens: int = 0
    average_prompt_length: float = 0.0
    duplicate_templates: int = 0
    unused_nodes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "totalTokens": self.total_tokens,
            "averagePromptLength": self.average_prompt_length,
            "duplicateTemplates": self.duplicate_templates,
            "unusedNodes": self.unused_nodes,
        }


def estimate_tokens(text: Any) -> int:
    """Rough token count: one token per four characters, rounded up."""
    if not text or not isinstance(text, str):
        return 0
    return math.ceil(len(text) / 4)


def calculate_metrics(
    nodes: Sequence[PipelineNode], edges: Sequence[PipelineEdge]
) -> OptimizationMetrics:
    """Walk the graph once and summarise its size and obvious waste.

    Template tokens, prompt length and duplicate counts come from
    prompt-template nodes with a non-empty template only.  ``description``
    and ``label`` add tokens for every node type.  A node is *unused* when
    nothing consumes it: its id is never an edge source and it is not an
    output parser.
    """
    total_tokens = 0
    total_prompt_length = 0
    prompt_count = 0
    duplicates = 0
    seen_templates: set[str] = set()

    for node in nodes:
        template = node.template
        if node.type == PROMPT_TEMPLATE and template:
            total_tokens += estimate_tokens(template)
            total_prompt_length += len(template)
            prompt_count += 1
            if template in seen_templates:
                duplicates += 1
            else:
                seen_templates.add(template)

        total_tokens += estimate_tokens(node.data.get("description"))
        total_tokens += estimate_tokens(node.data.get("label"))

    sources = {e.source for e in edges}
    unused = sum(1 for n in nodes if n.type != OUTPUT_PARSER and n.id not in sources)

    return OptimizationMetrics(
        node_count=len(nodes),
        edge_count=len(edges),
        total_tokens=total_tokens,
        average_prompt_length=total_prompt_length / prompt_count if prompt_count else 0.0,
        duplicate_templates=duplicates,
        unused_nodes=unused,
    )
