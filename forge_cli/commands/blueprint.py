"""Commands for importing and inspecting blueprints of the active user."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from contextforge.db import get_connection, init_db
from contextforge.db.blueprints import create_blueprint, get_blueprint, list_blueprints
from contextforge.optimizer.graph import PipelineGraph

from forge_cli.context import load_context, require_context
from forge_cli.rendering import render_graph

blueprint_app = typer.Typer(help="Import and inspect pipeline blueprints.")


def load_graph_file(path: Path) -> tuple[list[dict], list[dict]]:
    """Read ``{"nodes": [...], "edges": [...]}`` from *path* and validate it.

    Raises:
        ValueError: unreadable JSON or a malformed graph.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a JSON object with 'nodes' and 'edges'")
    nodes, edges = raw.get("nodes", []), raw.get("edges", [])
    try:
        PipelineGraph.from_payload(nodes, edges)
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc
    return nodes, edges


@blueprint_app.command("import")
@require_context
def blueprint_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Graph JSON file."),
    title: str = typer.Option(None, "--title", help="Title (defaults to the file name)."),
) -> None:
    """Store a graph file as a blueprint owned by the active user."""
    ctx = load_context()
    try:
        nodes, edges = load_graph_file(path)
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)

    conn = get_connection()
    init_db(conn)
    try:
        bp = create_blueprint(conn, ctx.active_user_id, title or path.stem, nodes, edges)
    finally:
        conn.close()
    typer.echo(f"✅ Imported {bp.title!r} [{bp.id}]  ({len(nodes)} nodes, {len(edges)} edges)")


@blueprint_app.command("list")
@require_context
def blueprint_list() -> None:
    """List the active user's blueprints."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    try:
        blueprints = list_blueprints(conn, ctx.active_user_id)
    finally:
        conn.close()
    if not blueprints:
        typer.echo("No blueprints yet.")
        return
    for bp in blueprints:
        typer.echo(f"  {bp.id}  {bp.title!r}  ({len(bp.nodes)} nodes, {len(bp.edges)} edges)")


@blueprint_app.command("show")
@require_context
def blueprint_show(blueprint_id: str = typer.Argument(..., help="Blueprint id.")) -> None:
    """Print a blueprint as a tree."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    try:
        bp = get_blueprint(conn, blueprint_id, ctx.active_user_id)
    finally:
        conn.close()
    if bp is None:
        typer.echo(f"❌ Blueprint not found: {blueprint_id}")
        raise typer.Exit(code=1)
    typer.echo(f"{bp.title} [{bp.id}]")
    typer.echo(render_graph(PipelineGraph.from_payload(bp.nodes, bp.edges)))
