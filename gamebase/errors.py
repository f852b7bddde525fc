"""Typed errors raised by the base lifecycle core.

Every error carries a stable ``code`` and a ``details`` dict with the ids,
thresholds or remaining times the caller needs. The HTTP layer maps ``kind``
to a status code; the core never retries on its own.
"""

from __future__ import annotations

from typing import Any


class GameError(Exception):
    """Base error for the core; ``kind`` selects the HTTP status."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, code: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "kind": self.kind, **self.details}


class NotFoundError(GameError):
    """Base, template or spawn location absent."""

    kind = "not_found"
    status_code = 404


class ConflictError(GameError):
    """Another writer holds the row: upgrade slot, coordinate, cooldown, limit."""

    kind = "conflict"
    status_code = 409


class InvalidStateError(GameError):
    """Operation not allowed for the base's effective status."""

    kind = "invalid_state"
    status_code = 409


class InvalidInputError(GameError):
    kind = "validation_error"
    status_code = 400


class InternalError(GameError):
    """Persistence or collaborator failure."""
