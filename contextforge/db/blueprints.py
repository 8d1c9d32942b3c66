"""CRUD operations for the ``blueprints`` table.

Every read is scoped to the owning user; a blueprint owned by someone else
is indistinguishable from one that does not exist.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Any, Optional

from contextforge.db.models import Blueprint


def _row_to_blueprint(row: sqlite3.Row) -> Blueprint:
    return Blueprint(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        nodes=json.loads(row["nodes"] or "[]"),
        edges=json.loads(row["edges"] or "[]"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def create_blueprint(
    conn: sqlite3.Connection,
    user_id: str,
    title: str,
    nodes: Optional[list[dict[str, Any]]] = None,
    edges: Optional[list[dict[str, Any]]] = None,
    blueprint_id: Optional[str] = None,
) -> Blueprint:
    """Insert a new blueprint and return it.

    Args:
        conn: Open DB connection.
        user_id: Owner of the blueprint.
        title: Human-readable display name.
        nodes: Pipeline node dicts as produced by the visual editor.
        edges: Pipeline edge dicts (``source`` / ``target`` node ids).
        blueprint_id: Explicit UUID override (auto-generated when omitted).
    """
    bid = blueprint_id or str(uuid.uuid4())
    now = int(time())
    with conn:
        conn.execute(
            """
            INSERT INTO blueprints (id, user_id, title, nodes, edges, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (bid, user_id, title, json.dumps(nodes or []), json.dumps(edges or []), now, now),
        )
    return get_blueprint(conn, bid, user_id)  # type: ignore[return-value]


def get_blueprint(
    conn: sqlite3.Connection, blueprint_id: str, user_id: str
) -> Optional[Blueprint]:
    """Fetch a blueprint owned by *user_id*.  Returns ``None`` otherwise."""
    row = conn.execute(
        "SELECT * FROM blueprints WHERE id = ? AND user_id = ?",
        (blueprint_id, user_id),
    ).fetchone()
    return _row_to_blueprint(row) if row else None


def list_blueprints(conn: sqlite3.Connection, user_id: str) -> list[Blueprint]:
    rows = conn.execute(
        "SELECT * FROM blueprints WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
        (user_id,),
    ).fetchall()
    return [_row_to_blueprint(r) for r in rows]


def delete_blueprint(conn: sqlite3.Connection, blueprint_id: str, user_id: str) -> bool:
    """Delete a blueprint.  Returns ``False`` if nothing matched."""
    with conn:
        cur = conn.execute(
            "DELETE FROM blueprints WHERE id = ? AND user_id = ?",
            (blueprint_id, user_id),
        )
    return cur.rowcount > 0
