"""Database layer tests.

All tests use an in-memory SQLite database so they are:
- Fast (no disk I/O)
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.contextforge)
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from contextforge.auth import authenticate, parse_bearer
from contextforge.db.blueprints import (
    create_blueprint,
    delete_blueprint,
    get_blueprint,
    list_blueprints,
)
from contextforge.db.connection import get_connection
from contextforge.db.migrations import current_version, init_db, migrate
from contextforge.db.optimizations import (
    count_rows,
    get_optimized_blueprint,
    list_history,
    list_optimized_blueprints,
    record_history,
    save_optimized_blueprint,
)
from contextforge.db.users import create_user, get_user_by_token, issue_token, revoke_token
from contextforge.errors import AuthenticationError

NODES = [{"id": "a", "type": "input", "data": {}}, {"id": "b", "type": "output", "data": {}}]
EDGES = [{"id": "e", "source": "a", "target": "b"}]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def user_id(conn: sqlite3.Connection) -> str:
    return create_user(conn, "ada@example.com").id


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestInitDb:
    def test_tables_exist(self, conn: sqlite3.Connection) -> None:
        tables = {
            r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert {
            "users",
            "api_tokens",
            "blueprints",
            "optimized_blueprints",
            "optimization_history",
            "schema_version",
        } <= tables

    def test_foreign_keys_enabled(self, conn: sqlite3.Connection) -> None:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_init_is_idempotent(self, conn: sqlite3.Connection) -> None:
        init_db(conn)
        init_db(conn)
        assert current_version(conn) == 0

    def test_migrate_applies_pending_once(self, conn: sqlite3.Connection) -> None:
        migrations = [(1, "ALTER TABLE blueprints ADD COLUMN tags TEXT")]
        assert migrate(conn, migrations) == 1
        assert migrate(conn, migrations) == 1
        cols = {r[1] for r in conn.execute("PRAGMA table_info(blueprints)")}
        assert "tags" in cols


# ---------------------------------------------------------------------------
# users / tokens / auth
# ---------------------------------------------------------------------------

class TestUsers:
    def test_duplicate_email_rejected(self, conn: sqlite3.Connection, user_id: str) -> None:
        with pytest.raises(ValueError, match="already exists"):
            create_user(conn, "ada@example.com")

    def test_token_resolves_to_user(self, conn: sqlite3.Connection, user_id: str) -> None:
        token = issue_token(conn, user_id)
        assert get_user_by_token(conn, token).id == user_id

    def test_revoked_token_rejected(self, conn: sqlite3.Connection, user_id: str) -> None:
        token = issue_token(conn, user_id)
        assert revoke_token(conn, token) is True
        assert revoke_token(conn, token) is False
        assert get_user_by_token(conn, token) is None

    def test_token_for_unknown_user(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            issue_token(conn, "nobody")


class TestAuth:
    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer   "])
    def test_bad_headers(self, header) -> None:
        with pytest.raises(AuthenticationError):
            parse_bearer(header)

    def test_parse_bearer(self) -> None:
        assert parse_bearer("Bearer abc123") == "abc123"
        assert parse_bearer("bearer abc123 ") == "abc123"

    def test_authenticate(self, conn: sqlite3.Connection, user_id: str) -> None:
        token = issue_token(conn, user_id)
        assert authenticate(conn, f"Bearer {token}").id == user_id
        with pytest.raises(AuthenticationError):
            authenticate(conn, "Bearer not-a-token")


# ---------------------------------------------------------------------------
# blueprints
# ---------------------------------------------------------------------------

class TestBlueprints:
    def test_create_and_get(self, conn: sqlite3.Connection, user_id: str) -> None:
        bp = create_blueprint(conn, user_id, "RAG bot", NODES, EDGES)
        fetched = get_blueprint(conn, bp.id, user_id)
        assert fetched.title == "RAG bot"
        assert fetched.nodes == NODES
        assert fetched.edges == EDGES

    def test_scoped_to_owner(self, conn: sqlite3.Connection, user_id: str) -> None:
        other = create_user(conn, "eve@example.com")
        bp = create_blueprint(conn, user_id, "Mine", NODES, EDGES)
        assert get_blueprint(conn, bp.id, other.id) is None
        assert list_blueprints(conn, other.id) == []
        assert delete_blueprint(conn, bp.id, other.id) is False

    def test_list_and_delete(self, conn: sqlite3.Connection, user_id: str) -> None:
        first = create_blueprint(conn, user_id, "One")
        second = create_blueprint(conn, user_id, "Two")
        assert [b.id for b in list_blueprints(conn, user_id)] == [second.id, first.id]
        assert delete_blueprint(conn, first.id, user_id) is True
        assert [b.id for b in list_blueprints(conn, user_id)] == [second.id]


# ---------------------------------------------------------------------------
# optimized_blueprints / optimization_history
# ---------------------------------------------------------------------------

class TestOptimizations:
    def _save(self, conn: sqlite3.Connection, user_id: str, blueprint_id: str):
        return save_optimized_blueprint(
            conn,
            original_blueprint_id=blueprint_id,
            user_id=user_id,
            optimized_nodes=NODES,
            optimized_edges=EDGES,
            optimization_metrics={"beforeMetrics": {"nodeCount": 2}},
            optimization_strategies=["node_pruning"],
            token_savings_percent=12.5,
            performance_improvement_percent=7.5,
            optimization_type="auto",
        )

    def test_save_and_get(self, conn: sqlite3.Connection, user_id: str) -> None:
        bp = create_blueprint(conn, user_id, "X", NODES, EDGES)
        saved = self._save(conn, user_id, bp.id)
        fetched = get_optimized_blueprint(conn, saved.id)
        assert fetched.optimized_nodes == NODES
        assert fetched.optimization_strategies == ["node_pruning"]
        assert fetched.token_savings_percent == 12.5

    def test_list_scoped_to_owner(self, conn: sqlite3.Connection, user_id: str) -> None:
        bp = create_blueprint(conn, user_id, "X", NODES, EDGES)
        self._save(conn, user_id, bp.id)
        other = create_user(conn, "eve@example.com")
        assert len(list_optimized_blueprints(conn, bp.id, user_id)) == 1
        assert list_optimized_blueprints(conn, bp.id, other.id) == []

    def test_history_success_and_failure(self, conn: sqlite3.Connection, user_id: str) -> None:
        record_history(conn, blueprint_id="bp", user_id=user_id, strategies_applied=["text_compression"])
        record_history(
            conn, blueprint_id="bp", user_id=user_id, success=False, error_message="boom"
        )
        entries = list_history(conn, "bp", user_id)
        assert [e.success for e in entries] == [False, True]
        assert entries[0].error_message == "boom"
        assert entries[1].strategies_applied == ["text_compression"]

    def test_history_allows_unknown_blueprint_and_user(self, conn: sqlite3.Connection) -> None:
        record_history(conn, blueprint_id=None, user_id=None, success=False, error_message="bad body")
        assert count_rows(conn, "optimization_history") == 1

    def test_count_rows_rejects_other_tables(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(ValueError):
            count_rows(conn, "users; DROP TABLE users")
