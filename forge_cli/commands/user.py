"""Commands for managing users and their API tokens."""

from __future__ import annotations

import typer

from contextforge.db import get_connection, init_db
from contextforge.db.users import create_user, get_user, issue_token, revoke_token

from forge_cli.context import CliContext, load_context, save_context

user_app = typer.Typer(help="Manage users and API tokens.")


@user_app.command("create")
def user_create(
    email: str = typer.Argument(..., help="Email address of the new user."),
    token: bool = typer.Option(True, "--token/--no-token", help="Issue an API token too."),
) -> None:
    """Create a user and make it the active user."""
    conn = get_connection()
    init_db(conn)
    try:
        user = create_user(conn, email)
        save_context(CliContext(active_user_id=user.id, active_user_email=user.email))
        typer.echo(f"✅ User created: {user.email} [{user.id}]")
        if token:
            typer.echo(f"🔑 Token: {issue_token(conn, user.id)}")
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@user_app.command("use")
def user_use(user_id: str = typer.Argument(..., help="User id to make active.")) -> None:
    """Switch the active user."""
    conn = get_connection()
    init_db(conn)
    try:
        user = get_user(conn, user_id)
    finally:
        conn.close()
    if user is None:
        typer.echo(f"❌ User not found: {user_id}")
        raise typer.Exit(code=1)
    save_context(CliContext(active_user_id=user.id, active_user_email=user.email))
    typer.echo(f"✅ Active user: {user.email}")


@user_app.command("token")
def user_token(
    user_id: str = typer.Argument(None, help="User id (defaults to the active user)."),
) -> None:
    """Issue a new API token."""
    user_id = user_id or load_context().active_user_id
    if not user_id:
        typer.echo("❌ No user given and no active user selected.")
        raise typer.Exit(code=1)
    conn = get_connection()
    init_db(conn)
    try:
        typer.echo(issue_token(conn, user_id))
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@user_app.command("revoke")
def user_revoke(token: str = typer.Argument(..., help="Token to revoke.")) -> None:
    """Revoke an API token."""
    conn = get_connection()
    init_db(conn)
    try:
        revoked = revoke_token(conn, token)
    finally:
        conn.close()
    if not revoked:
        typer.echo("❌ Unknown or already revoked token.")
        raise typer.Exit(code=1)
    typer.echo("✅ Token revoked.")
