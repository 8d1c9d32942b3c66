"""Database initialisation and migration helpers.

``init_db(conn)`` may be called on an existing database.
``migrate(conn)`` runs incremental schema changes tracked in a version table.
"""

from __future__ import annotations

import sqlite3

from contextforge.config import settings


# Incremental changes applied by ``migrate``, as ``(version, sql)`` pairs.
MIGRATIONS: list[tuple[int, str]] = []


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes, then run pending migrations.

    Args:
        conn: An open, configured SQLite connection.
    """
    sql = settings.schema_path.read_text(encoding="utf-8")
    # executescript() issues an implicit COMMIT first; fine for DDL-only scripts.
    conn.executescript(sql)
    _ensure_version_table(conn)
    migrate(conn)


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the internal schema-version tracking table if absent."""
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (strftime('%s', 'now'))
            )
            """
        )


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection, migrations: list[tuple[int, str]] | None = None) -> int:
    """Apply pending migrations in version order; return the resulting version."""
    applied = current_version(conn)
    for version, sql in sorted(migrations if migrations is not None else MIGRATIONS):
        if version > applied:
            with conn:
                conn.execute(sql)
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)", (version,)
                )
            applied = version
    return applied
