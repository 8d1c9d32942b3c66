"""Users and their bearer tokens.

Stands in for the hosted auth provider: a request is authenticated by
looking its bearer token up in ``api_tokens``.
"""

from __future__ import annotations

import secrets
import sqlite3
import uuid
from time import time
from typing import Optional

from contextforge.db.models import User


def _row_to_user(row: sqlite3.Row) -> User:
    return User(id=row["id"], email=row["email"], created_at=row["created_at"])


def create_user(conn: sqlite3.Connection, email: str, user_id: Optional[str] = None) -> User:
    """Insert a user and return it.

    Raises:
        ValueError: If *email* is already registered.
    """
    uid = user_id or str(uuid.uuid4())
    try:
        with conn:
            conn.execute(
                "INSERT INTO users (id, email, created_at) VALUES (?, ?, ?)",
                (uid, email, int(time())),
            )
    except sqlite3.IntegrityError as exc:
        raise ValueError(f"User already exists: {email!r}") from exc
    return get_user(conn, uid)  # type: ignore[return-value]


def get_user(conn: sqlite3.Connection, user_id: str) -> Optional[User]:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def issue_token(conn: sqlite3.Connection, user_id: str) -> str:
    """Create a new bearer token for *user_id*.

    Raises:
        ValueError: If the user does not exist.
    """
    if get_user(conn, user_id) is None:
        raise ValueError(f"User not found: {user_id!r}")
    token = secrets.token_urlsafe(32)
    with conn:
        conn.execute(
            "INSERT INTO api_tokens (token, user_id, created_at) VALUES (?, ?, ?)",
            (token, user_id, int(time())),
        )
    return token


def revoke_token(conn: sqlite3.Connection, token: str) -> bool:
    """Revoke *token*.  Returns ``False`` if it was unknown or already revoked."""
    with conn:
        cur = conn.execute(
            "UPDATE api_tokens SET revoked = 1 WHERE token = ? AND revoked = 0",
            (token,),
        )
    return cur.rowcount > 0


def get_user_by_token(conn: sqlite3.Connection, token: str) -> Optional[User]:
    """Return the owner of an active *token*, or ``None``."""
    row = conn.execute(
        """
        SELECT u.*
        FROM   api_tokens t
        JOIN   users u ON u.id = t.user_id
        WHERE  t.token = ? AND t.revoked = 0
        """,
        (token,),
    ).fetchone()
    return _row_to_user(row) if row else None
