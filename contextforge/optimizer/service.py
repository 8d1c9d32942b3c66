"""Fetch → optimize → persist, for one authenticated request.

The stored blueprint is read-only here: results go to a new
``optimized_blueprints`` row plus an ``optimization_history`` row.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Any, Optional

from contextforge.db.blueprints import get_blueprint
from contextforge.db.models import User
from contextforge.db.optimizations import record_history, save_optimized_blueprint
from contextforge.errors import BlueprintNotFoundError
from contextforge.optimizer.analysis import build_report
from contextforge.optimizer.engine import optimize_graph
from contextforge.optimizer.graph import PipelineGraph

logger = logging.getLogger(__name__)


@dataclass
class OptimizationRequest:
    blueprint_id: str
    optimization_type: str = "auto"
    strategies: tuple[str, ...] = ()


@dataclass
class HistoryWrite:
    """Outcome of the best-effort failure audit write."""

    ok: bool
    history_id: Optional[int] = None
    error: Optional[str] = None


async def optimize_blueprint(
    conn: sqlite3.Connection, user: User, request: OptimizationRequest
) -> dict[str, Any]:
    """Optimize one of *user*'s blueprints and return the response payload.

    Raises:
        BlueprintNotFoundError: unknown id, or owned by someone else.
        InvalidOptimizationRequest: bad optimization type or strategy.
        ValueError: the stored graph is malformed.
    """
    blueprint = get_blueprint(conn, request.blueprint_id, user.id)
    if blueprint is None:
        raise BlueprintNotFoundError(request.blueprint_id)

    graph = PipelineGraph.from_payload(blueprint.nodes, blueprint.edges)
    logger.info(
        "[optimize] blueprint=%s type=%s strategies=%s",
        blueprint.id,
        request.optimization_type,
        list(request.strategies),
    )
    outcome = await optimize_graph(graph, request.optimization_type, request.strategies)
    nodes, edges = outcome.graph.to_payload()
    before, after = outcome.before.to_dict(), outcome.after.to_dict()
    improvements = outcome.improvements()

    record = save_optimized_blueprint(
        conn,
        original_blueprint_id=blueprint.id,
        user_id=user.id,
        optimized_nodes=nodes,
        optimized_edges=edges,
        optimization_metrics={
            "beforeMetrics": before,
            "afterMetrics": after,
            "improvements": {k: v for k, v in improvements.items() if k != "details"},
        },
        optimization_strategies=outcome.strategies_applied,
        token_savings_percent=outcome.token_savings_percent,
        performance_improvement_percent=outcome.performance_improvement_percent,
        optimization_type=request.optimization_type,
    )
    record_history(
        conn,
        blueprint_id=blueprint.id,
        user_id=user.id,
        optimization_type=request.optimization_type,
        strategies_applied=outcome.strategies_applied,
        before_metrics=before,
        after_metrics=after,
        improvements={
            "tokenSavingsPercent": outcome.token_savings_percent,
            "performanceImprovementPercent": outcome.performance_improvement_percent,
            "details": outcome.details,
        },
        execution_time_ms=outcome.execution_time_ms,
    )
    logger.info(
        "[optimize] blueprint=%s done in %d ms, applied=%s",
        blueprint.id,
        outcome.execution_time_ms,
        outcome.strategies_applied,
    )

    return {
        "success": True,
        "optimizationId": record.id,
        "strategiesApplied": outcome.strategies_applied,
        "beforeMetrics": before,
        "afterMetrics": after,
        "improvements": improvements,
        "optimizedNodes": nodes,
        "optimizedEdges": edges,
        "executionTime": outcome.execution_time_ms,
    }


ANALYSIS_TYPE = "analysis"


def analyze_blueprint(
    conn: sqlite3.Connection, user: User, blueprint_id: str
) -> dict[str, Any]:
    """Analyze one of *user*'s stored blueprints and log it to the history.

    The history row uses ``optimization_type = "analysis"``; its strategies
    are the suggestion types found, and its improvements the report summary.

    Raises:
        BlueprintNotFoundError: unknown id, or owned by someone else.
        ValueError: the stored graph is malformed.
    """
    started = time.perf_counter()
    blueprint = get_blueprint(conn, blueprint_id, user.id)
    if blueprint is None:
        raise BlueprintNotFoundError(blueprint_id)

    report = build_report(PipelineGraph.from_payload(blueprint.nodes, blueprint.edges))
    summary = report.summary
    record_history(
        conn,
        blueprint_id=blueprint.id,
        user_id=user.id,
        optimization_type=ANALYSIS_TYPE,
        strategies_applied=list(dict.fromkeys(s.type for s in report.suggestions)),
        before_metrics={"totalTokens": report.total_tokens, "totalCost": report.total_cost},
        after_metrics={
            "tokenReduction": summary["totalTokenReduction"],
            "costSavings": summary["totalCostSavings"],
            "performanceGain": summary["totalPerformanceGain"],
        },
        improvements=summary,
        execution_time_ms=int((time.perf_counter() - started) * 1000),
    )
    logger.info(
        "[analyze] blueprint=%s suggestions=%d", blueprint.id, summary["totalSuggestions"]
    )
    return report.to_dict()


def record_failure(
    conn: sqlite3.Connection,
    user: Optional[User],
    request: Optional[OptimizationRequest],
    exc: BaseException,
    execution_time_ms: int = 0,
) -> HistoryWrite:
    """Write a ``success = 0`` history row; never raises."""
    try:
        history_id = record_history(
            conn,
            blueprint_id=request.blueprint_id if request else None,
            user_id=user.id if user else None,
            optimization_type=request.optimization_type if request else "auto",
            strategies_applied=list(request.strategies) if request else [],
            success=False,
            error_message=str(exc),
            execution_time_ms=execution_time_ms,
        )
    except Exception as log_exc:  # noqa: BLE001
        logger.error("[history] failed to record optimization failure: %s", log_exc)
        return HistoryWrite(ok=False, error=str(log_exc))
    return HistoryWrite(ok=True, history_id=history_id)
