"""Pipeline graph model.

Nodes and edges arrive as the JSON objects the visual editor stores.  Only
the keys the optimizer reads are lifted into attributes; everything else
(``position``, ``sourceHandle``, styling, ...) rides along in ``extra`` so a
graph survives a ``from_payload`` / ``to_payload`` round trip unchanged.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Optional

# Node types understood by the optimizer passes.
INPUT = "input"
PROMPT_TEMPLATE = "prompt-template"
RAG_RETRIEVER = "rag-retriever"
MEMORY_STORE = "memory-store"
STATE_TRACKER = "state-tracker"
PROCESSOR = "processor"
OUTPUT = "output"
OUTPUT_PARSER = "output-parser"
LLM = "llm"
CONTEXT_BUILDER = "context-builder"

NODE_TYPES = frozenset(
    {
        INPUT,
        PROMPT_TEMPLATE,
        RAG_RETRIEVER,
        MEMORY_STORE,
        STATE_TRACKER,
        PROCESSOR,
        OUTPUT,
        OUTPUT_PARSER,
        LLM,
        CONTEXT_BUILDER,
    }
)


def _require_object(raw: Any, what: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError(f"Pipeline {what} must be a JSON object, got {type(raw).__name__}")
    return raw


@dataclass
class PipelineNode:
    id: str
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    # The object this node was parsed from; lets to_dict() reproduce keys the
    # input left out (or spelled as non-strings) when nothing changed them.
    raw: Optional[dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def template(self) -> str:
        value = self.data.get("template")
        return value if isinstance(value, str) else ""

    def with_data(self, **changes: Any) -> PipelineNode:
        """Return a copy of this node with *changes* merged into ``data``."""
        return PipelineNode(
            id=self.id,
            type=self.type,
            data={**self.data, **changes},
            extra=copy.deepcopy(self.extra),
            raw=self.raw,
        )

    @classmethod
    def from_dict(cls, raw: Any) -> PipelineNode:
        raw = _require_object(raw, "node")
        if "id" not in raw:
            raise ValueError("Pipeline node is missing an 'id'")
        data = raw.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Node {raw['id']!r} has a non-object 'data' field")
        extra = {k: v for k, v in raw.items() if k not in {"id", "type", "data"}}
        return cls(
            id=str(raw["id"]),
            type=str(raw.get("type") or ""),
            data=copy.deepcopy(data),
            extra=copy.deepcopy(extra),
            raw=copy.deepcopy(raw),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "type": self.type}
        out.update(copy.deepcopy(self.extra))
        out["data"] = copy.deepcopy(self.data)
        if self.raw is None:
            return out

        raw = self.raw
        if str(raw["id"]) == self.id:
            out["id"] = copy.deepcopy(raw["id"])
        if not self.type and not raw.get("type"):
            if "type" in raw:
                out["type"] = copy.deepcopy(raw["type"])
            else:
                del out["type"]
        if not self.data and not raw.get("data"):
            if "data" in raw:
                out["data"] = copy.deepcopy(raw["data"])
            else:
                del out["data"]
        return out


@dataclass
class PipelineEdge:
    source: str
    target: str
    id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)
    raw: Optional[dict[str, Any]] = field(default=None, compare=False, repr=False)

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    @classmethod
    def from_dict(cls, raw: Any) -> PipelineEdge:
        raw = _require_object(raw, "edge")
        if "source" not in raw or "target" not in raw:
            raise ValueError(f"Pipeline edge {raw.get('id')!r} needs 'source' and 'target'")
        extra = {k: v for k, v in raw.items() if k not in {"id", "source", "target"}}
        return cls(
            source=str(raw["source"]),
            target=str(raw["target"]),
            id=raw.get("id"),
            extra=copy.deepcopy(extra),
            raw=copy.deepcopy(raw),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id is not None:
            out["id"] = self.id
        out["source"] = self.source
        out["target"] = self.target
        if self.raw is not None:
            for end in ("source", "target"):
                if str(self.raw[end]) == out[end]:
                    out[end] = copy.deepcopy(self.raw[end])
        out.update(copy.deepcopy(self.extra))
        return out


@dataclass
class PipelineGraph:
    nodes: list[PipelineNode] = field(default_factory=list)
    edges: list[PipelineEdge] = field(default_factory=list)

    @classmethod
    def from_payload(
        cls,
        nodes: Any,
        edges: Any,
    ) -> PipelineGraph:
        """Build a graph from stored JSON lists.

        Raises:
            ValueError: On non-list input, malformed nodes/edges or duplicate
                node ids.
        """
        if not isinstance(nodes, list) or not isinstance(edges, list):
            raise ValueError("'nodes' and 'edges' must both be JSON arrays")
        parsed = [PipelineNode.from_dict(n) for n in nodes]
        seen: set[str] = set()
        for node in parsed:
            if node.id in seen:
                raise ValueError(f"Duplicate node id {node.id!r}")
            seen.add(node.id)
        return cls(nodes=parsed, edges=[PipelineEdge.from_dict(e) for e in edges])

    def to_payload(self) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        return [n.to_dict() for n in self.nodes], [e.to_dict() for e in self.edges]

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def copy(self) -> PipelineGraph:
        return copy.deepcopy(self)

    def dangling_edges(self) -> list[PipelineEdge]:
        """Edges whose source or target is not a node in this graph."""
        ids = self.node_ids()
        return [e for e in self.edges if e.source not in ids or e.target not in ids]
