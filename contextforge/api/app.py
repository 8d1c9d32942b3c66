"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``) and initialises the schema.  On
shutdown it closes the connection cleanly.

Routers
-------
    /blueprint-optimizer  run optimization strategies over a stored blueprint
    /blueprints           owner-scoped blueprint storage and history
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers

from contextforge import __version__
from contextforge.config import configure_logging
from contextforge.db import get_connection, init_db
from contextforge.errors import ContextForgeError

from contextforge.api.routers import blueprints as blueprints_router
from contextforge.api.routers import optimizer as optimizer_router


class PreflightCORSMiddleware(CORSMiddleware):
    """``CORSMiddleware`` whose accepted preflight replies are an empty 200.

    Starlette answers a preflight itself, before any route runs, with a
    plain-text ``OK`` body.  Rejected preflights keep Starlette's 400 and its
    explanation.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            k: v
            for k, v in response.headers.items()
            if k not in ("content-length", "content-type")
        }
        return Response(status_code=200, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    try:
        yield
    finally:
        conn.close()


async def _contextforge_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = exc.status_code if isinstance(exc, ContextForgeError) else 500
    return JSONResponse(status_code=status, content={"success": False, "error": str(exc)})


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    configure_logging()
    app = FastAPI(
        title="ContextForge API",
        description=(
            "Stores AI context-pipeline blueprints and optimizes them: text "
            "compression, template consolidation, node pruning and parameter tuning."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        PreflightCORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.add_exception_handler(ContextForgeError, _contextforge_error_handler)

    app.include_router(
        optimizer_router.router, prefix="/blueprint-optimizer", tags=["optimizer"]
    )
    app.include_router(blueprints_router.router, prefix="/blueprints", tags=["blueprints"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn contextforge.api.app:app --reload
app = create_app()
