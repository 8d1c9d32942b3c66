"""Bearer-token authentication."""

from __future__ import annotations

import sqlite3
from typing import Optional

from contextforge.db.models import User
from contextforge.db.users import get_user_by_token
from contextforge.errors import AuthenticationError


def parse_bearer(header: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` value.

    Raises:
        AuthenticationError: If the header is missing, not a bearer value, or empty.
    """
    if not header:
        raise AuthenticationError("Authorization required")
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authentication")
    return token.strip()


def authenticate(conn: sqlite3.Connection, header: Optional[str]) -> User:
    """Resolve the user behind *header* or raise :class:`AuthenticationError`."""
    token = parse_bearer(header)
    user = get_user_by_token(conn, token)
    if user is None:
        raise AuthenticationError("Invalid authentication")
    return user
