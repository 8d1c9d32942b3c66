"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class User:
    id: str
    email: str
    created_at: int


@dataclass
class Blueprint:
    id: str
    user_id: str
    title: str
    nodes: list[dict[str, Any]] = field(default_factory=list)
    edges: list[dict[str, Any]] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0


@dataclass
class OptimizedBlueprint:
    id: str
    original_blueprint_id: str
    user_id: str
    optimized_nodes: list[dict[str, Any]]
    optimized_edges: list[dict[str, Any]]
    optimization_metrics: dict[str, Any]
    optimization_strategies: list[str]
    token_savings_percent: float
    performance_improvement_percent: float
    optimization_type: str
    created_at: int


@dataclass
class HistoryEntry:
    id: int
    blueprint_id: Optional[str]
    user_id: Optional[str]
    optimization_type: str
    strategies_applied: list[str]
    before_metrics: dict[str, Any]
    after_metrics: dict[str, Any]
    improvements: dict[str, Any]
    success: bool
    error_message: Optional[str]
    execution_time_ms: int
    created_at: int
