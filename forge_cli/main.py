"""ContextForge CLI entry point.

Usage:
    forge --help

Command groups:
    db         → database setup and status
    user       → users and API tokens
    blueprint  → import / list / show blueprints
    optimize   → run, analyze, compress, history
    serve      → start the HTTP API
"""

from __future__ import annotations

import typer

from contextforge.config import configure_logging, settings
from contextforge.db import get_connection, init_db
from contextforge.db.migrations import current_version
from contextforge.db.optimizations import count_rows

from forge_cli.commands.blueprint import blueprint_app
from forge_cli.commands.optimize import optimize_app
from forge_cli.commands.user import user_app

app = typer.Typer(
    name="forge",
    help="ContextForge blueprint optimizer CLI.",
    no_args_is_help=True,
)

db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")
app.add_typer(user_app, name="user")
app.add_typer(blueprint_app, name="blueprint")
app.add_typer(optimize_app, name="optimize")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")) -> None:
    configure_logging("DEBUG" if verbose else None)


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("status")
def db_status() -> None:
    """Show schema version and row counts."""
    conn = get_connection()
    init_db(conn)
    try:
        typer.echo(f"[db status] {settings.db_path}  schema v{current_version(conn)}")
        for table in ("blueprints", "optimized_blueprints", "optimization_history"):
            typer.echo(f"  {table:<24} {count_rows(conn, table)}")
    finally:
        conn.close()


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Port."),
    reload: bool = typer.Option(False, help="Auto-reload on code changes."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("contextforge.api.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
