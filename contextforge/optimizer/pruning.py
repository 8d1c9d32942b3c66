"""Remove nodes that contribute nothing to the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from contextforge.optimizer.graph import MEMORY_STORE, PipelineEdge, PipelineNode


@dataclass
class PruneResult:
    nodes: list[PipelineNode]
    edges: list[PipelineEdge]
    pruned_ids: list[str] = field(default_factory=list)

    @property
    def pruned_count(self) -> int:
        return len(self.pruned_ids)


def prune_nodes(
    nodes: Sequence[PipelineNode], edges: Sequence[PipelineEdge]
) -> PruneResult:
    """Drop isolated nodes, then every ``memory-store`` after the first.

    A node is isolated when no edge names it as source *or* target, so sinks
    with at least one inbound edge are kept.  Redundant memory stores are
    removed together with every edge that touches them.
    """
    referenced = {e.source for e in edges} | {e.target for e in edges}
    pruned: list[str] = [n.id for n in nodes if n.id not in referenced]
    kept = [n for n in nodes if n.id in referenced]

    memory_ids = [n.id for n in kept if n.type == MEMORY_STORE]
    redundant = set(memory_ids[1:])
    pruned.extend(memory_ids[1:])

    return PruneResult(
        nodes=[n for n in kept if n.id not in redundant],
        edges=[e for e in edges if e.source not in redundant and e.target not in redundant],
        pruned_ids=pruned,
    )
