"""Blueprint optimizer endpoint.

Routes
------
POST    /blueprint-optimizer            Optimize a stored blueprint
OPTIONS /blueprint-optimizer            CORS preflight (empty 200)
POST    /blueprint-optimizer/analyze    Suggestion report for a posted or stored graph

Errors from ``POST /blueprint-optimizer`` use the envelope
``{"success": false, "error": "..."}``.  Every failure after authentication
is also recorded in ``optimization_history`` on a best-effort basis.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from contextforge.api.deps import current_user, get_db
from contextforge.auth import authenticate
from contextforge.db.models import User
from contextforge.errors import ContextForgeError, InvalidOptimizationRequest
from contextforge.optimizer.analysis import analyze_graph
from contextforge.optimizer.graph import PipelineGraph
from contextforge.optimizer.service import (
    OptimizationRequest,
    analyze_blueprint,
    optimize_blueprint,
    record_failure,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class OptimizeBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    blueprint_id: str = Field(alias="blueprintId", min_length=1)
    optimization_type: str = Field(default="auto", alias="optimizationType")
    strategies: list[str] = Field(default_factory=list)

    def to_request(self) -> OptimizationRequest:
        return OptimizationRequest(
            blueprint_id=self.blueprint_id,
            optimization_type=self.optimization_type,
            strategies=tuple(self.strategies),
        )


class GraphBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    blueprint_id: Optional[str] = Field(default=None, alias="blueprintId")
    nodes: list[Any] = Field(default_factory=list)
    edges: list[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def error_response(exc: BaseException) -> JSONResponse:
    status = exc.status_code if isinstance(exc, ContextForgeError) else 500
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": str(exc) or exc.__class__.__name__},
    )


async def _parse_body(request: Request) -> OptimizationRequest:
    try:
        return OptimizeBody.model_validate(await request.json()).to_request()
    except json.JSONDecodeError as exc:
        raise InvalidOptimizationRequest("Request body must be valid JSON") from exc
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise InvalidOptimizationRequest(f"Invalid request body: {fields}") from exc


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.options("")
def optimize_preflight() -> Response:
    return Response(status_code=200)


@router.post("")
async def optimize_endpoint(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> JSONResponse:
    """Run the requested strategies over a stored blueprint.

    The stored blueprint is left untouched; the optimized copy and an audit
    row are written alongside it.
    """
    conn = get_db(request)
    try:
        user = authenticate(conn, authorization)
    except ContextForgeError as exc:
        return error_response(exc)

    started = time.perf_counter()
    opt_request: Optional[OptimizationRequest] = None
    try:
        opt_request = await _parse_body(request)
        payload = await optimize_blueprint(conn, user, opt_request)
    except Exception as exc:  # noqa: BLE001
        logger.exception("[optimize] blueprint optimization failed")
        elapsed = int((time.perf_counter() - started) * 1000)
        write = record_failure(conn, user, opt_request, exc, elapsed)
        if not write.ok:
            logger.error("[history] failure row not written: %s", write.error)
        return error_response(exc)

    return JSONResponse(content=payload)


@router.post("/analyze", response_model=dict[str, Any])
def analyze_endpoint(
    body: GraphBody,
    request: Request,
    user: User = Depends(current_user),
) -> dict[str, Any]:
    """Metrics, warnings, per-node cost estimates and ranked suggestions.

    With ``blueprintId`` the stored blueprint is analyzed and the run is
    logged to its history; otherwise the posted graph is analyzed and nothing
    is written.
    """
    if body.blueprint_id:
        try:
            return analyze_blueprint(get_db(request), user, body.blueprint_id)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        graph = PipelineGraph.from_payload(body.nodes, body.edges)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return analyze_graph(graph)
