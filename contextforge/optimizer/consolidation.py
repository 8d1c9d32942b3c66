"""Merge near-duplicate prompt templates.

Similarity is the Jaccard index of the two templates' lowercase word sets.
Comparison is pairwise, O(n²) in the number of prompt-template nodes, which
is fine for editor-sized graphs (dozens of nodes) and nothing larger.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from contextforge.config import settings
from contextforge.optimizer.graph import PROMPT_TEMPLATE, PipelineEdge, PipelineNode


@dataclass
class ConsolidationResult:
    nodes: list[PipelineNode]
    edges: list[PipelineEdge]
    merged: list[tuple[str, str]] = field(default_factory=list)

    @property
    def consolidations(self) -> int:
        return len(self.merged)


def _words(text: str) -> list[str]:
    return text.lower().split()


def text_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity ``|A ∩ B| / |A ∪ B|`` of the two word sets."""
    set1, set2 = set(_words(text1)), set(_words(text2))
    union = set1 | set2
    if not union:
        return 1.0 if text1 == text2 else 0.0
    return len(set1 & set2) / len(union)


def merge_templates(template1: str, template2: str) -> str:
    """Keep the shorter template and append the longer one's extra words.

    Extra words keep the longer template's order, lowercased.  The result
    can read awkwardly; it is a token-saving merge, not a rewrite.
    """
    if len(template1) <= len(template2):
        shorter, longer = template1, template2
    else:
        shorter, longer = template2, template1

    shorter_words = set(_words(shorter))
    unique = [w for w in _words(longer) if w not in shorter_words]
    if unique:
        return f"{shorter} {' '.join(unique)}".strip()
    return shorter


def _merge_variables(first: object, second: object) -> list:
    merged: list = []
    for source in (first, second):
        if not isinstance(source, list):
            continue
        for var in source:
            if var not in merged:
                merged.append(var)
    return merged


def _rewrite_edges(
    edges: Sequence[PipelineEdge], replaced_by: dict[str, str]
) -> list[PipelineEdge]:
    """Point edges at surviving nodes; drop self-loops and exact repeats."""

    def resolve(node_id: str) -> str:
        while node_id in replaced_by:
            node_id = replaced_by[node_id]
        return node_id

    out: list[PipelineEdge] = []
    seen: set[tuple[str, str]] = set()
    for edge in edges:
        source, target = resolve(edge.source), resolve(edge.target)
        touched = source != edge.source or target != edge.target
        if touched and (source == target or (source, target) in seen):
            continue
        seen.add((source, target))
        out.append(
            PipelineEdge(
                source=source, target=target, id=edge.id, extra=dict(edge.extra), raw=edge.raw
            )
            if touched
            else edge
        )
    return out


def consolidate_templates(
    nodes: Sequence[PipelineNode],
    edges: Optional[Sequence[PipelineEdge]] = None,
    *,
    threshold: Optional[float] = None,
    rewrite_edges: Optional[bool] = None,
) -> ConsolidationResult:
    """Fold each prompt template into an earlier one it closely resembles.

    Pairs are visited in node order.  When the similarity of two surviving
    templates exceeds *threshold*, the earlier node keeps the merged template
    and the union of both ``variables`` lists; the later node is removed.

    Edges are returned untouched unless *rewrite_edges* is set, in which case
    edges that referenced a removed node are re-pointed at its survivor.
    """
    threshold = settings.similarity_threshold if threshold is None else threshold
    rewrite = settings.rewrite_consolidated_edges if rewrite_edges is None else rewrite_edges
    edge_list = list(edges or [])

    by_id: dict[str, PipelineNode] = {n.id: n for n in nodes}
    candidates = [n.id for n in nodes if n.type == PROMPT_TEMPLATE and n.template]
    removed: dict[str, str] = {}
    merged: list[tuple[str, str]] = []

    for i, first_id in enumerate(candidates):
        if first_id in removed:
            continue
        for second_id in candidates[i + 1 :]:
            if second_id in removed:
                continue
            first, second = by_id[first_id], by_id[second_id]
            if text_similarity(first.template, second.template) <= threshold:
                continue
            by_id[first_id] = first.with_data(
                template=merge_templates(first.template, second.template),
                variables=_merge_variables(
                    first.data.get("variables"), second.data.get("variables")
                ),
            )
            removed[second_id] = first_id
            merged.append((first_id, second_id))

    survivors = [by_id[n.id] for n in nodes if n.id not in removed]
    new_edges = _rewrite_edges(edge_list, removed) if rewrite and removed else edge_list
    return ConsolidationResult(nodes=survivors, edges=new_edges, merged=merged)
