"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from contextforge.api import app

    uvicorn contextforge.api:app --reload
"""

from contextforge.api.app import app

__all__ = ["app"]
