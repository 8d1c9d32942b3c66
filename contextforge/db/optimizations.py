"""Operations on ``optimized_blueprints`` and ``optimization_history``.

The two inserts are independent commits.  A crash between them leaves an
optimized blueprint with no audit row, which is accepted.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Any, Optional

from contextforge.db.models import HistoryEntry, OptimizedBlueprint


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_optimized(row: sqlite3.Row) -> OptimizedBlueprint:
    return OptimizedBlueprint(
        id=row["id"],
        original_blueprint_id=row["original_blueprint_id"],
        user_id=row["user_id"],
        optimized_nodes=json.loads(row["optimized_nodes"]),
        optimized_edges=json.loads(row["optimized_edges"]),
        optimization_metrics=json.loads(row["optimization_metrics"]),
        optimization_strategies=json.loads(row["optimization_strategies"]),
        token_savings_percent=row["token_savings_percent"],
        performance_improvement_percent=row["performance_improvement_percent"],
        optimization_type=row["optimization_type"],
        created_at=row["created_at"],
    )


def _row_to_history(row: sqlite3.Row) -> HistoryEntry:
    return HistoryEntry(
        id=row["id"],
        blueprint_id=row["blueprint_id"],
        user_id=row["user_id"],
        optimization_type=row["optimization_type"],
        strategies_applied=json.loads(row["strategies_applied"] or "[]"),
        before_metrics=json.loads(row["before_metrics"] or "{}"),
        after_metrics=json.loads(row["after_metrics"] or "{}"),
        improvements=json.loads(row["improvements"] or "{}"),
        success=bool(row["success"]),
        error_message=row["error_message"],
        execution_time_ms=row["execution_time_ms"],
        created_at=row["created_at"],
    )


# ---------------------------------------------------------------------------
# optimized_blueprints
# ---------------------------------------------------------------------------

def save_optimized_blueprint(
    conn: sqlite3.Connection,
    *,
    original_blueprint_id: str,
    user_id: str,
    optimized_nodes: list[dict[str, Any]],
    optimized_edges: list[dict[str, Any]],
    optimization_metrics: dict[str, Any],
    optimization_strategies: list[str],
    token_savings_percent: float,
    performance_improvement_percent: float,
    optimization_type: str,
) -> OptimizedBlueprint:
    """Insert a derived graph and return the stored record."""
    oid = str(uuid.uuid4())
    with conn:
        conn.execute(
            """
            INSERT INTO optimized_blueprints (
                id, original_blueprint_id, user_id, optimized_nodes, optimized_edges,
                optimization_metrics, optimization_strategies, token_savings_percent,
                performance_improvement_percent, optimization_type, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                oid,
                original_blueprint_id,
                user_id,
                json.dumps(optimized_nodes),
                json.dumps(optimized_edges),
                json.dumps(optimization_metrics),
                json.dumps(optimization_strategies),
                token_savings_percent,
                performance_improvement_percent,
                optimization_type,
                int(time()),
            ),
        )
    return get_optimized_blueprint(conn, oid)  # type: ignore[return-value]


def get_optimized_blueprint(
    conn: sqlite3.Connection, optimization_id: str
) -> Optional[OptimizedBlueprint]:
    row = conn.execute(
        "SELECT * FROM optimized_blueprints WHERE id = ?", (optimization_id,)
    ).fetchone()
    return _row_to_optimized(row) if row else None


def list_optimized_blueprints(
    conn: sqlite3.Connection, blueprint_id: str, user_id: str
) -> list[OptimizedBlueprint]:
    """Return every optimized version of *blueprint_id* owned by *user_id*, newest first."""
    rows = conn.execute(
        """
        SELECT * FROM optimized_blueprints
        WHERE  original_blueprint_id = ? AND user_id = ?
        ORDER  BY created_at DESC, rowid DESC
        """,
        (blueprint_id, user_id),
    ).fetchall()
    return [_row_to_optimized(r) for r in rows]


# ---------------------------------------------------------------------------
# optimization_history
# ---------------------------------------------------------------------------

def record_history(
    conn: sqlite3.Connection,
    *,
    blueprint_id: Optional[str],
    user_id: Optional[str],
    optimization_type: str = "auto",
    strategies_applied: Optional[list[str]] = None,
    before_metrics: Optional[dict[str, Any]] = None,
    after_metrics: Optional[dict[str, Any]] = None,
    improvements: Optional[dict[str, Any]] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    execution_time_ms: int = 0,
) -> int:
    """Append an audit row and return its id."""
    with conn:
        cur = conn.execute(
            """
            INSERT INTO optimization_history (
                blueprint_id, user_id, optimization_type, strategies_applied,
                before_metrics, after_metrics, improvements, success,
                error_message, execution_time_ms, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                blueprint_id,
                user_id,
                optimization_type,
                json.dumps(strategies_applied or []),
                json.dumps(before_metrics or {}),
                json.dumps(after_metrics or {}),
                json.dumps(improvements or {}),
                int(success),
                error_message,
                execution_time_ms,
                int(time()),
            ),
        )
    return int(cur.lastrowid)


def list_history(
    conn: sqlite3.Connection, blueprint_id: str, user_id: str
) -> list[HistoryEntry]:
    """Return audit rows for *blueprint_id*, newest first."""
    rows = conn.execute(
        """
        SELECT * FROM optimization_history
        WHERE  blueprint_id = ? AND user_id = ?
        ORDER  BY id DESC
        """,
        (blueprint_id, user_id),
    ).fetchall()
    return [_row_to_history(r) for r in rows]


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    """Row count for one of the optimizer tables (used by the CLI status line)."""
    if table not in {"optimized_blueprints", "optimization_history", "blueprints"}:
        raise ValueError(f"Unknown table {table!r}")
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608
