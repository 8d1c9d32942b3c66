"""Clamp oversized node parameters to conservative ceilings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple, Sequence

from contextforge.optimizer.graph import MEMORY_STORE, RAG_RETRIEVER, STATE_TRACKER, PipelineNode


class ParameterRule(NamedTuple):
    node_type: str
    field: str
    threshold: float
    clamp_to: int
    message: str


# Values strictly above ``threshold`` are replaced with ``clamp_to``.
PARAMETER_RULES: tuple[ParameterRule, ...] = (
    ParameterRule(MEMORY_STORE, "maxTokens", 4000, 2000, "Reduced memory token limit for {id}"),
    ParameterRule(MEMORY_STORE, "ttl", 120, 60, "Optimized TTL for {id}"),
    ParameterRule(RAG_RETRIEVER, "maxResults", 5, 3, "Reduced RAG results for {id}"),
    ParameterRule(STATE_TRACKER, "maxHistory", 10, 5, "Reduced state history for {id}"),
)


@dataclass
class ParameterResult:
    nodes: list[PipelineNode]
    optimizations: list[str] = field(default_factory=list)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def over_limit(node: PipelineNode) -> list[ParameterRule]:
    """Rules whose threshold *node* currently exceeds."""
    return [
        rule
        for rule in PARAMETER_RULES
        if rule.node_type == node.type
        and _is_number(node.data.get(rule.field))
        and node.data[rule.field] > rule.threshold
    ]


def optimize_parameters(nodes: Sequence[PipelineNode]) -> ParameterResult:
    """Return copies of *nodes* with over-limit parameters clamped.

    The clamped values are not checked against what the node actually needs.
    """
    out: list[PipelineNode] = []
    optimizations: list[str] = []
    for node in nodes:
        rules = over_limit(node)
        if not rules:
            out.append(node)
            continue
        out.append(node.with_data(**{r.field: r.clamp_to for r in rules}))
        optimizations.extend(r.message.format(id=node.id) for r in rules)
    return ParameterResult(nodes=out, optimizations=optimizations)
