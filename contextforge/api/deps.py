"""Shared FastAPI dependencies."""

from __future__ import annotations

import sqlite3
from typing import Optional

from fastapi import Header, Request

from contextforge.auth import authenticate
from contextforge.db.models import User


def get_db(request: Request) -> sqlite3.Connection:
    return request.app.state.db


def current_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> User:
    """Resolve the bearer token; raises ``AuthenticationError`` (→ 401)."""
    return authenticate(get_db(request), authorization)
