"""Exception types raised by the optimizer and mapped to HTTP statuses by the API."""

from __future__ import annotations


class ContextForgeError(Exception):
    """Base class for every error the service reports to callers."""

    status_code: int = 500


class AuthenticationError(ContextForgeError):
    """Missing, malformed, unknown, or revoked bearer token."""

    status_code = 401


class BlueprintNotFoundError(ContextForgeError):
    """Blueprint does not exist or belongs to another user."""

    status_code = 404

    def __init__(self, blueprint_id: str) -> None:
        super().__init__(f"Blueprint not found: {blueprint_id!r}")
        self.blueprint_id = blueprint_id


class InvalidOptimizationRequest(ContextForgeError):
    """Unknown optimization type or strategy name."""

    status_code = 400
