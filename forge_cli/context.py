"""Persistent state for the ContextForge CLI.

Tracks the "active user" whose blueprints the commands operate on.
Stored in ``~/.contextforge_cli/context.json``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from functools import wraps
from pathlib import Path
from typing import Callable

import typer

from contextforge.config import settings


@dataclass
class CliContext:
    active_user_id: str | None = None
    active_user_email: str | None = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> CliContext:
        try:
            return cls(**json.loads(data))
        except (json.JSONDecodeError, TypeError):
            return cls()


def _get_context_path() -> Path:
    return settings.cli_config_dir / "context.json"


def load_context() -> CliContext:
    """Load the CLI context from disk. Returns defaults if missing/corrupt."""
    path = _get_context_path()
    if not path.exists():
        return CliContext()
    try:
        return CliContext.from_json(path.read_text(encoding="utf-8"))
    except OSError:
        return CliContext()


def save_context(ctx: CliContext) -> None:
    settings.cli_config_dir.mkdir(parents=True, exist_ok=True)
    _get_context_path().write_text(ctx.to_json(), encoding="utf-8")


def require_context(func: Callable) -> Callable:
    """Abort the wrapped command unless a user is active."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        if not load_context().active_user_id:
            typer.echo("❌ No active user selected.")
            typer.echo("Run 'user create <email>' or 'user use <id>' first.")
            raise typer.Exit(code=1)
        return func(*args, **kwargs)

    return wrapper
