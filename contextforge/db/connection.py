"""Opening the ContextForge SQLite database.

The API keeps one connection for its whole lifetime (see
``contextforge.api.app.lifespan``); each CLI command opens its own and
closes it when done.  Tests pass ``":memory:"`` for a throwaway database.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Union

from contextforge.config import settings

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    # WAL lets CLI readers run while the API is writing history rows.
    "PRAGMA journal_mode = WAL",
)


def get_connection(db_path: Optional[Union[Path, str]] = None) -> sqlite3.Connection:
    """Connect to *db_path* (default ``settings.db_path``) with rows as ``sqlite3.Row``.

    The workspace directory is created on demand for file databases.  The
    connection may be used from worker threads as well as the event loop.
    """
    path = db_path or settings.db_path
    if str(path) != ":memory:":
        settings.ensure_workspace()

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    for pragma in _PRAGMAS:
        conn.execute(pragma)
    return conn
