"""Owner-scoped blueprint endpoints.

Routes
------
GET    /blueprints                       List the caller's blueprints
POST   /blueprints                       Store a new blueprint
GET    /blueprints/{id}                  Fetch one blueprint
DELETE /blueprints/{id}                  Delete one blueprint
GET    /blueprints/{id}/optimizations    Optimized versions, newest first
GET    /blueprints/{id}/history          Optimization audit trail, newest first
"""

from __future__ import annotations

import sqlite3
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from contextforge.api.deps import current_user, get_db
from contextforge.db.blueprints import (
    create_blueprint,
    delete_blueprint,
    get_blueprint,
    list_blueprints,
)
from contextforge.db.models import Blueprint, User
from contextforge.db.optimizations import list_history, list_optimized_blueprints
from contextforge.optimizer.graph import PipelineGraph

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class BlueprintCreate(BaseModel):
    title: str = Field(min_length=1)
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_blueprint(conn: sqlite3.Connection, blueprint_id: str, user: User) -> Blueprint:
    blueprint = get_blueprint(conn, blueprint_id, user.id)
    if blueprint is None:
        raise HTTPException(status_code=404, detail=f"Blueprint '{blueprint_id}' not found.")
    return blueprint


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=list[dict[str, Any]])
def list_blueprints_endpoint(
    user: User = Depends(current_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict[str, Any]]:
    return [asdict(b) for b in list_blueprints(conn, user.id)]


@router.post("", status_code=201, response_model=dict[str, Any])
def create_blueprint_endpoint(
    body: BlueprintCreate,
    user: User = Depends(current_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict[str, Any]:
    """Store a graph after checking node ids are unique and edges are well formed."""
    try:
        PipelineGraph.from_payload(body.nodes, body.edges)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    blueprint = create_blueprint(conn, user.id, body.title, body.nodes, body.edges)
    return asdict(blueprint)


@router.get("/{blueprint_id}", response_model=dict[str, Any])
def get_blueprint_endpoint(
    blueprint_id: str,
    user: User = Depends(current_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict[str, Any]:
    return asdict(_require_blueprint(conn, blueprint_id, user))


@router.delete("/{blueprint_id}", status_code=204)
def delete_blueprint_endpoint(
    blueprint_id: str,
    user: User = Depends(current_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> Response:
    if not delete_blueprint(conn, blueprint_id, user.id):
        raise HTTPException(status_code=404, detail=f"Blueprint '{blueprint_id}' not found.")
    return Response(status_code=204)


@router.get("/{blueprint_id}/optimizations", response_model=list[dict[str, Any]])
def list_optimizations_endpoint(
    blueprint_id: str,
    user: User = Depends(current_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict[str, Any]]:
    """Optimized versions survive deletion of the original, so no existence check."""
    return [asdict(o) for o in list_optimized_blueprints(conn, blueprint_id, user.id)]


@router.get("/{blueprint_id}/history", response_model=list[dict[str, Any]])
def history_endpoint(
    blueprint_id: str,
    user: User = Depends(current_user),
    conn: sqlite3.Connection = Depends(get_db),
) -> list[dict[str, Any]]:
    return [asdict(h) for h in list_history(conn, blueprint_id, user.id)]
