"""Database layer package.

Public re-exports so callers can write::

    from contextforge.db import get_connection, init_db
"""

from contextforge.db.connection import get_connection
from contextforge.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
