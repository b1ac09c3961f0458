from __future__ import annotations

from typing import Any, Mapping


class AppError(Exception):
    code = "app_error"
    status_code = 400

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    """Required-field or format violation; ``details`` maps field -> message."""

    code = "validation_error"
    status_code = 422


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class StateError(AppError):
    """The referenced record is in a state that forbids the requested change."""

    code = "invalid_state"
    status_code = 409


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404


class MissingReferenceError(NotFoundError):
    """A foreign id in the payload does not resolve to an existing record."""

    code = "reference_error"


class InfrastructureError(AppError):
    code = "infrastructure_error"
    status_code = 500
