"""Typer sub-command groups."""
