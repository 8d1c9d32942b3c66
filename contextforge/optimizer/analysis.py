"""Read-only pipeline analysis: warnings, per-node cost estimates, suggestions.

Nothing here changes the graph.  ``analyze_graph`` returns

* ``metrics``       the same counters the optimizer reports before/after
* ``warnings``      structural problems (dangling edges, isolated nodes, ...)
* ``nodeAnalysis``  estimated tokens, dollar cost and optimization potential per node
* ``suggestions``   advisory changes, highest severity first
* ``summary``       suggestion impacts added up

Token and cost figures are rough: four characters per token, a 70/30
input/output split, and list prices per 1k tokens from ``MODEL_PRICING``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from contextforge.config import settings
from contextforge.optimizer.consolidation import text_similarity
from contextforge.optimizer.graph import (
    CONTEXT_BUILDER,
    LLM,
    PROMPT_TEMPLATE,
    RAG_RETRIEVER,
    PipelineGraph,
    PipelineNode,
)
from contextforge.optimizer.metrics import calculate_metrics, estimate_tokens
from contextforge.optimizer.parameters import over_limit

# USD per 1k tokens.
MODEL_PRICING: dict[str, dict[str, float]] = {
    "gpt-4.1-2025-04-14": {"input": 0.01, "output": 0.03},
    "gpt-4o": {"input": 0.005, "output": 0.015},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "claude-3.5-sonnet": {"input": 0.003, "output": 0.015},
    "claude-3-haiku": {"input": 0.00025, "output": 0.00125},
}
PREMIUM_MODEL = "gpt-4.1-2025-04-14"
INPUT_SHARE = 0.7

SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}

# Node types whose data carries an LLM prompt.
PROMPT_TYPES = frozenset({PROMPT_TEMPLATE, LLM})

DEFAULT_OUTPUT_TOKENS = 1000
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_TOP_K = 5
MAX_PARALLEL_HINTS = 3

_REDUNDANT_PHRASES = (
    "please",
    "kindly",
    "make sure to",
    "ensure that",
    "be sure to",
    "it is important",
    "remember to",
    "do not forget",
)
_REDUNDANT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bplease\s+",
        r"\bkindly\s+",
        r"\bmake\s+sure\s+to\s+",
        r"\bensure\s+that\s+",
        r"\bbe\s+sure\s+to\s+",
        r"\bit\s+is\s+important\s+(?:to\s+)?",
        r"\bremember\s+to\s+",
        r"\bdo\s+not\s+forget\s+(?:to\s+)?",
    )
]
_SENTENCE_BREAK = re.compile(r"\.\s+([A-Z])")
_SPACES = re.compile(r"[^\S\n]+")

_REASONING_KEYWORDS = (
    "analyze",
    "reasoning",
    "complex",
    "multi-step",
    "logic",
    "solve",
    "calculate",
    "mathematical",
    "research",
    "academic",
    "scientific",
)


# ---------------------------------------------------------------------------
# Report types
# ---------------------------------------------------------------------------

@dataclass
class Suggestion:
    id: str
    type: str
    severity: str
    title: str
    description: str
    impact: dict[str, float]
    before: str
    after: str
    difficulty: str
    time_estimate: str
    steps: list[str] = field(default_factory=list)
    node_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "impact": dict(self.impact),
            "before": self.before,
            "after": self.after,
            "nodeId": self.node_id,
            "implementation": {
                "difficulty": self.difficulty,
                "timeEstimate": self.time_estimate,
                "steps": list(self.steps),
            },
        }


@dataclass(frozen=True)
class NodeAnalysis:
    current_tokens: int
    estimated_cost: float
    optimization_potential: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentTokens": self.current_tokens,
            "estimatedCost": self.estimated_cost,
            "optimizationPotential": self.optimization_potential,
        }


@dataclass
class AnalysisReport:
    metrics: dict[str, Any]
    warnings: list[str]
    node_analysis: dict[str, NodeAnalysis]
    suggestions: list[Suggestion]

    @property
    def summary(self) -> dict[str, float]:
        def total(key: str) -> float:
            return sum(s.impact.get(key, 0) for s in self.suggestions)

        return {
            "totalTokenReduction": total("tokenReduction"),
            "totalCostSavings": total("costSavings"),
            "totalPerformanceGain": total("performanceGain"),
            "totalSuggestions": len(self.suggestions),
        }

    @property
    def total_tokens(self) -> int:
        return sum(a.current_tokens for a in self.node_analysis.values())

    @property
    def total_cost(self) -> float:
        return sum(a.estimated_cost for a in self.node_analysis.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "metrics": self.metrics,
            "warnings": list(self.warnings),
            "nodeAnalysis": {nid: a.to_dict() for nid, a in self.node_analysis.items()},
            "suggestions": [s.to_dict() for s in self.suggestions],
            "summary": self.summary,
        }


# ---------------------------------------------------------------------------
# Per-node estimates
# ---------------------------------------------------------------------------

def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def node_prompt(node: PipelineNode) -> str:
    """The node's user prompt: ``data.prompt``, else its template."""
    return _text(node.data, "prompt") or node.template


def _rag_settings(node: PipelineNode) -> tuple[float, float]:
    chunk_size = _number(node.data, "chunkSize") or DEFAULT_CHUNK_SIZE
    top_k = _number(node.data, "topK") or DEFAULT_TOP_K
    return chunk_size, top_k


def estimate_node_tokens(node: PipelineNode) -> int:
    """Tokens one invocation of *node* is expected to consume.

    Prompt nodes count system prompt, prompt and ``maxTokens`` of output;
    retrievers count ``topK`` chunks at a quarter token per character;
    context builders count their template twice.  Anything else is free.
    """
    tokens: float = 0
    if node.type in PROMPT_TYPES:
        tokens += estimate_tokens(_text(node.data, "systemPrompt"))
        tokens += estimate_tokens(node_prompt(node))
        tokens += _number(node.data, "maxTokens") or DEFAULT_OUTPUT_TOKENS
    elif node.type == RAG_RETRIEVER:
        chunk_size, top_k = _rag_settings(node)
        tokens += top_k * chunk_size * 0.25
    elif node.type == CONTEXT_BUILDER:
        tokens += estimate_tokens(node.template) * 2
    return math.ceil(tokens)


def estimate_cost(node: PipelineNode, tokens: int) -> float:
    """Dollar cost of *tokens*, priced at the node's model (or the default)."""
    model = _text(node.data, "model") or settings.default_model
    pricing = MODEL_PRICING.get(model) or MODEL_PRICING.get(
        settings.default_model, MODEL_PRICING["gpt-4o-mini"]
    )
    input_tokens = tokens * INPUT_SHARE
    output_tokens = tokens * (1 - INPUT_SHARE)
    return (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1000


def has_redundant_instructions(prompt: str) -> bool:
    lowered = prompt.lower()
    return sum(1 for phrase in _REDUNDANT_PHRASES if phrase in lowered) > 3


def requires_advanced_reasoning(node: PipelineNode) -> bool:
    combined = f"{node_prompt(node)} {_text(node.data, 'systemPrompt')}".lower()
    return any(keyword in combined for keyword in _REASONING_KEYWORDS)


def _overpriced(node: PipelineNode) -> bool:
    return node.data.get("model") == PREMIUM_MODEL and not requires_advanced_reasoning(node)


def optimization_potential(node: PipelineNode) -> int:
    """0-100 score of how much a node stands to gain from tuning."""
    potential = 0
    if node.type in PROMPT_TYPES:
        if len(node_prompt(node)) > 2000:
            potential += 30
        if len(_text(node.data, "systemPrompt")) > 1000:
            potential += 20
        if has_redundant_instructions(node_prompt(node)):
            potential += 15
        if _overpriced(node):
            potential += 25
    elif node.type == RAG_RETRIEVER:
        chunk_size, top_k = _rag_settings(node)
        if chunk_size > 1500 or chunk_size < 500:
            potential += 20
        if top_k > 10:
            potential += 15
    return min(potential, 100)


def analyze_node(node: PipelineNode) -> NodeAnalysis:
    tokens = estimate_node_tokens(node)
    return NodeAnalysis(
        current_tokens=tokens,
        estimated_cost=estimate_cost(node, tokens),
        optimization_potential=optimization_potential(node),
    )


def optimize_prompt(prompt: str) -> str:
    """Drop nagging phrases and put each following sentence on its own bullet line."""
    optimized = prompt
    for pattern in _REDUNDANT_PATTERNS:
        optimized = pattern.sub("", optimized)
    optimized = _SENTENCE_BREAK.sub(r"\n• \1", optimized)
    lines = (_SPACES.sub(" ", line).strip() for line in optimized.split("\n"))
    return "\n".join(line for line in lines if line)


# ---------------------------------------------------------------------------
# Suggestion generators
# ---------------------------------------------------------------------------

def _node_suggestions(node: PipelineNode, analysis: NodeAnalysis) -> list[Suggestion]:
    if node.type not in PROMPT_TYPES:
        return []
    out: list[Suggestion] = []
    prompt = node_prompt(node)

    if len(prompt) > 1500:
        out.append(
            Suggestion(
                id=f"{node.id}-prompt-reduction",
                type="token_reduction",
                severity="medium",
                title="Optimize Prompt Length",
                description="This prompt is long and could be made more concise without losing effectiveness.",
                impact={
                    "tokenReduction": math.ceil(len(prompt) * 0.3 / 4),
                    "costSavings": analysis.estimated_cost * 0.3,
                },
                before=prompt[:100] + "...",
                after=optimize_prompt(prompt)[:100] + "...",
                difficulty="medium",
                time_estimate="15-30 minutes",
                steps=[
                    "Remove redundant instructions",
                    "Use bullet points instead of paragraphs",
                    "Combine similar requirements",
                    "Remove filler words and phrases",
                ],
                node_id=node.id,
            )
        )

    if _overpriced(node):
        out.append(
            Suggestion(
                id=f"{node.id}-model-optimization",
                type="cost_savings",
                severity="high",
                title="Use More Cost-Effective Model",
                description="This task does not need advanced reasoning and could use a cheaper model.",
                impact={"costSavings": analysis.estimated_cost * 0.7},
                before=f"Model: {node.data['model']}",
                after="Model: gpt-4o-mini",
                difficulty="easy",
                time_estimate="2 minutes",
                steps=[
                    "Change model to gpt-4o-mini",
                    "Test output quality",
                    "Adjust temperature if needed",
                ],
                node_id=node.id,
            )
        )

    temperature = _number(node.data, "temperature")
    if temperature > 0.7:
        out.append(
            Suggestion(
                id=f"{node.id}-temperature-optimization",
                type="performance",
                severity="low",
                title="Optimize Temperature Setting",
                description="Lower temperature improves consistency of the output.",
                impact={"performanceGain": 15},
                before=f"Temperature: {temperature}",
                after="Temperature: 0.3-0.5",
                difficulty="easy",
                time_estimate="1 minute",
                steps=["Reduce temperature to 0.3-0.5", "Test for consistency improvements"],
                node_id=node.id,
            )
        )
    return out


def nodes_are_similar(first: PipelineNode, second: PipelineNode) -> bool:
    if first.type != second.type:
        return False
    if first.type in PROMPT_TYPES:
        return text_similarity(node_prompt(first), node_prompt(second)) > 0.8
    if first.type == RAG_RETRIEVER:
        _, k1 = _rag_settings(first)
        _, k2 = _rag_settings(second)
        return first.data.get("vectorStore") == second.data.get("vectorStore") and abs(k1 - k2) <= 1
    return False


def find_redundant_groups(nodes: list[PipelineNode]) -> list[list[str]]:
    """Groups of same-type nodes doing near-identical work, first-seen order."""
    groups: list[list[str]] = []
    grouped: set[str] = set()
    for node in nodes:
        if node.id in grouped:
            continue
        similar = [
            other.id
            for other in nodes
            if other.id != node.id and other.id not in grouped and nodes_are_similar(node, other)
        ]
        if similar:
            group = [node.id, *similar]
            groups.append(group)
            grouped.update(group)
    return groups


def find_parallelizable(graph: PipelineGraph) -> list[str]:
    """Up to three nodes missing either an inbound or an outbound edge."""
    sources = {e.source for e in graph.edges}
    targets = {e.target for e in graph.edges}
    loose = [n.id for n in graph.nodes if n.id not in targets or n.id not in sources]
    return loose[:MAX_PARALLEL_HINTS]


def _structure_suggestions(graph: PipelineGraph) -> list[Suggestion]:
    out: list[Suggestion] = []
    for group in find_redundant_groups(graph.nodes):
        out.append(
            Suggestion(
                id=f"redundant-nodes-{'-'.join(group)}",
                type="redundancy",
                severity="medium",
                title="Remove Redundant Nodes",
                description=f"Nodes {', '.join(group)} perform similar functions and could be consolidated.",
                impact={"tokenReduction": 500, "costSavings": 0.02, "performanceGain": 25},
                before=f"{len(group)} separate nodes",
                after="1 consolidated node",
                difficulty="medium",
                time_estimate="30-45 minutes",
                steps=[
                    "Analyze node functionalities",
                    "Merge similar operations",
                    "Update connections",
                    "Test consolidated flow",
                ],
            )
        )

    parallel = find_parallelizable(graph)
    if parallel:
        out.append(
            Suggestion(
                id="parallelize-nodes",
                type="performance",
                severity="medium",
                title="Parallelize Independent Operations",
                description=f"Nodes {', '.join(parallel)} do not depend on each other and can run in parallel.",
                impact={"performanceGain": 40},
                before="Sequential execution",
                after="Parallel execution",
                difficulty="medium",
                time_estimate="20-30 minutes",
                steps=[
                    "Identify independent nodes",
                    "Restructure pipeline flow",
                    "Test parallel execution",
                    "Verify output consistency",
                ],
            )
        )
    return out


def _rag_suggestions(node: PipelineNode) -> list[Suggestion]:
    if node.type != RAG_RETRIEVER:
        return []
    out: list[Suggestion] = []
    chunk_size, top_k = _rag_settings(node)
    mini_input = MODEL_PRICING["gpt-4o-mini"]["input"]

    if chunk_size > 1500:
        saved = (chunk_size - DEFAULT_CHUNK_SIZE) * top_k
        out.append(
            Suggestion(
                id=f"{node.id}-chunk-size",
                type="rag_optimization",
                severity="medium",
                title="Optimize Chunk Size",
                description="Large chunks make retrieval less precise and cost more.",
                impact={"tokenReduction": saved, "costSavings": saved * mini_input / 1000},
                before=f"Chunk size: {chunk_size}",
                after=f"Chunk size: {DEFAULT_CHUNK_SIZE}",
                difficulty="easy",
                time_estimate="5 minutes",
                steps=[
                    f"Reduce chunk size to {DEFAULT_CHUNK_SIZE} characters",
                    "Test retrieval quality",
                    "Adjust if needed",
                ],
                node_id=node.id,
            )
        )

    if top_k > 8:
        saved = (top_k - DEFAULT_TOP_K) * chunk_size
        out.append(
            Suggestion(
                id=f"{node.id}-topk-optimization",
                type="rag_optimization",
                severity="low",
                title="Optimize Retrieval Count",
                description="Retrieving too many chunks adds noise and cost.",
                impact={"tokenReduction": saved, "costSavings": saved * mini_input / 1000},
                before=f"Top K: {top_k}",
                after=f"Top K: {DEFAULT_TOP_K}",
                difficulty="easy",
                time_estimate="2 minutes",
                steps=[
                    f"Reduce top K to {DEFAULT_TOP_K}",
                    "Test retrieval relevance",
                    "Monitor output quality",
                ],
                node_id=node.id,
            )
        )
    return out


def _caching_suggestion(node_analysis: dict[str, NodeAnalysis]) -> list[Suggestion]:
    expensive = [
        a for a in node_analysis.values() if a.estimated_cost > settings.caching_cost_threshold
    ]
    if not expensive:
        return []
    return [
        Suggestion(
            id="implement-caching",
            type="caching",
            severity="medium",
            title="Implement Response Caching",
            description="Cache responses of expensive nodes to avoid paying for repeated calls.",
            # Assumes a 70% cache hit rate.
            impact={"costSavings": sum(a.estimated_cost * 0.7 for a in expensive)},
            before="No caching",
            after="Response caching enabled",
            difficulty="hard",
            time_estimate="1-2 hours",
            steps=[
                "Identify cacheable operations",
                "Implement cache key strategy",
                "Add cache storage mechanism",
                "Configure cache expiration",
                "Test cache effectiveness",
            ],
        )
    ]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def structural_warnings(graph: PipelineGraph, duplicate_templates: int = 0) -> list[str]:
    warnings: list[str] = []
    for edge in graph.dangling_edges():
        warnings.append(f"Edge {edge.source} → {edge.target} references a missing node")

    referenced = {e.source for e in graph.edges} | {e.target for e in graph.edges}
    for node in graph.nodes:
        if node.id not in referenced:
            warnings.append(f"Node {node.id} is not connected to anything")
        for rule in over_limit(node):
            warnings.append(
                f"Node {node.id} sets {rule.field}={node.data[rule.field]} "
                f"(suggested ceiling {rule.clamp_to})"
            )

    if duplicate_templates:
        warnings.append(f"{duplicate_templates} prompt templates are exact duplicates")
    return warnings


def build_report(graph: PipelineGraph) -> AnalysisReport:
    metrics = calculate_metrics(graph.nodes, graph.edges)
    node_analysis: dict[str, NodeAnalysis] = {}
    suggestions: list[Suggestion] = []

    for node in graph.nodes:
        analysis = analyze_node(node)
        node_analysis[node.id] = analysis
        suggestions.extend(_node_suggestions(node, analysis))

    suggestions.extend(_structure_suggestions(graph))
    for node in graph.nodes:
        suggestions.extend(_rag_suggestions(node))
    suggestions.extend(_caching_suggestion(node_analysis))

    # sorted() is stable: equal severities keep generation order.
    suggestions = sorted(suggestions, key=lambda s: SEVERITY_RANK[s.severity], reverse=True)
    return AnalysisReport(
        metrics=metrics.to_dict(),
        warnings=structural_warnings(graph, metrics.duplicate_templates),
        node_analysis=node_analysis,
        suggestions=suggestions,
    )


def analyze_graph(graph: PipelineGraph) -> dict[str, Any]:
    """Full read-only report for *graph* as a JSON-ready dict."""
    return build_report(graph).to_dict()
