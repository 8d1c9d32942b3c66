"""Commands for running and inspecting blueprint optimizations."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer

from contextforge.db import get_connection, init_db
from contextforge.db.optimizations import list_history
from contextforge.db.users import get_user
from contextforge.errors import ContextForgeError
from contextforge.optimizer.analysis import analyze_graph
from contextforge.optimizer.compression import compress_template
from contextforge.optimizer.engine import STRATEGY_ORDER
from contextforge.optimizer.graph import PipelineGraph
from contextforge.optimizer.metrics import estimate_tokens
from contextforge.optimizer.service import (
    OptimizationRequest,
    analyze_blueprint,
    optimize_blueprint,
    record_failure,
)

from forge_cli.commands.blueprint import load_graph_file
from forge_cli.context import load_context, require_context
from forge_cli.rendering import render_metrics, render_suggestions

optimize_app = typer.Typer(help="Optimize blueprints and inspect results.")


@optimize_app.command("run")
@require_context
def optimize_run(
    blueprint_id: str = typer.Argument(..., help="Blueprint id."),
    optimization_type: str = typer.Option(
        "auto", "--type", help="auto | aggressive | conservative."
    ),
    strategy: List[str] = typer.Option(
        list(STRATEGY_ORDER), "--strategy", "-s", help="Strategy to apply (repeatable)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response payload."),
) -> None:
    """Optimize a stored blueprint and save the result."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    request = OptimizationRequest(
        blueprint_id=blueprint_id,
        optimization_type=optimization_type,
        strategies=tuple(strategy),
    )
    try:
        user = get_user(conn, ctx.active_user_id)
        if user is None:
            typer.echo(f"❌ Active user no longer exists: {ctx.active_user_id}")
            raise typer.Exit(code=1)
        try:
            payload = asyncio.run(optimize_blueprint(conn, user, request))
        except (ContextForgeError, ValueError) as e:
            record_failure(conn, user, request, e)
            typer.echo(f"❌ Optimization failed: {e}")
            raise typer.Exit(code=1)
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(payload, indent=2))
        return

    improvements = payload["improvements"]
    typer.echo(f"[optimize] {payload['optimizationId']}  ({payload['executionTime']} ms)")
    typer.echo(f"[optimize] Applied: {', '.join(payload['strategiesApplied']) or '(none)'}")
    typer.echo(render_metrics(payload["beforeMetrics"], payload["afterMetrics"]))
    typer.echo(
        f"[optimize] Token savings {improvements['tokenSavingsPercent']:.1f}%  "
        f"score {improvements['performanceImprovementPercent']:.1f}%  "
        f"nodes -{improvements['nodeReduction']}"
    )
    for line in improvements["details"]:
        typer.echo(f"  • {line}")


@optimize_app.command("analyze")
def optimize_analyze(
    path: Optional[Path] = typer.Argument(
        None, exists=True, dir_okay=False, help="Graph JSON file."
    ),
    blueprint_id: Optional[str] = typer.Option(
        None, "--blueprint", "-b", help="Analyze a stored blueprint of the active user instead."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the raw report."),
) -> None:
    """Show metrics, warnings and optimization suggestions.

    Stored blueprints are analyzed for the active user and the run is logged
    to the blueprint's history.
    """
    if (path is None) == (blueprint_id is None):
        typer.echo("❌ Give either a graph file or --blueprint <id>.")
        raise typer.Exit(code=1)

    if blueprint_id is not None:
        report = _analyze_stored(blueprint_id)
    else:
        try:
            nodes, edges = load_graph_file(path)
        except ValueError as e:
            typer.echo(f"❌ {e}")
            raise typer.Exit(code=1)
        report = analyze_graph(PipelineGraph.from_payload(nodes, edges))

    if as_json:
        typer.echo(json.dumps(report, indent=2))
        return
    typer.echo(render_metrics(report["metrics"]))
    if not report["warnings"]:
        typer.echo("✅ No warnings.")
    for warning in report["warnings"]:
        typer.echo(f"  ⚠ {warning}")
    typer.echo(render_suggestions(report))


@require_context
def _analyze_stored(blueprint_id: str) -> dict:
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    try:
        user = get_user(conn, ctx.active_user_id)
        if user is None:
            typer.echo(f"❌ Active user no longer exists: {ctx.active_user_id}")
            raise typer.Exit(code=1)
        try:
            return analyze_blueprint(conn, user, blueprint_id)
        except (ContextForgeError, ValueError) as e:
            typer.echo(f"❌ Analysis failed: {e}")
            raise typer.Exit(code=1)
    finally:
        conn.close()


@optimize_app.command("compress")
def optimize_compress(
    text: str = typer.Argument(..., help="Prompt text to compress."),
    level: float = typer.Option(0.5, "--level", min=0.0, max=1.0, help="Compression level."),
) -> None:
    """Compress a prompt and report the estimated token change."""
    compressed = compress_template(text, level)
    typer.echo(compressed)
    typer.echo(
        f"[compress] {len(text)} → {len(compressed)} chars, "
        f"{estimate_tokens(text)} → {estimate_tokens(compressed)} tokens"
    )


@optimize_app.command("history")
@require_context
def optimize_history(blueprint_id: str = typer.Argument(..., help="Blueprint id.")) -> None:
    """List optimization attempts for a blueprint."""
    ctx = load_context()
    conn = get_connection()
    init_db(conn)
    try:
        entries = list_history(conn, blueprint_id, ctx.active_user_id)
    finally:
        conn.close()
    if not entries:
        typer.echo("No optimization history.")
        return
    for h in entries:
        status = "✅" if h.success else "❌"
        summary = ", ".join(h.strategies_applied) or "(none)"
        if not h.success:
            summary = h.error_message or "failed"
        typer.echo(f"  {status} #{h.id} [{h.optimization_type}] {summary}  {h.execution_time_ms} ms")
