"""Error taxonomy shared by the lifecycle core.

Every error carries the HTTP status the web layer maps it to, so handlers
never need to special-case individual exception types.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class UnknownSymbol(PortalError):
    """A (category, symbol) pair or surrogate id is missing from the seed data.

    This is a deployment defect, never a user error.
    """

    status_code = 500
    default_message = "Unknown symbol"

    def __init__(self, message: str | None = None, missing: list[tuple[str, str]] | None = None):
        super().__init__(message)
        self.missing = missing or []


class NotFound(PortalError):
    status_code = 404
    default_message = "Resource not found"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Forbidden"


class InvalidTransition(PortalError):
    """The state machine rejects the requested move."""

    status_code = 409
    default_message = "Invalid status transition"

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(message or f"Invalid status transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class InvalidOperation(PortalError):
    """A precondition of the requested operation does not hold."""

    status_code = 409
    default_message = "Operation not allowed in the current state"


class ValidationError(PortalError):
    status_code = 422
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: dict | None = None):
        super().__init__(message)
        self.errors = errors
