"""
Domain errors raised by the service layer.

All of them subclass ValueError so service callers that only care about
"the request was rejected" can keep catching ValueError. The registered
handler in error_handlers.py turns them into the JSON envelope with the
matching HTTP status.
"""

from typing import Optional


class AppError(ValueError):
    status_code = 500
    error = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(AppError):
    """Missing or malformed required field; nothing was written."""

    status_code = 400
    error = "invalid_input"


class NoOpError(AppError):
    """Update request that carries no field to change."""

    status_code = 400
    error = "no_op"


class InvalidReferenceError(AppError):
    """A referenced parent row (fractile, cell, unit) does not exist."""

    status_code = 400
    error = "invalid_reference"


class NotFoundError(AppError):
    status_code = 404
    error = "not_found"


class IncompleteHierarchyError(AppError):
    """A tier exists but its cell or fractile link is broken."""

    status_code = 422
    error = "incomplete_hierarchy"


class ForbiddenError(AppError):
    status_code = 403
    error = "forbidden"


class ConflictError(AppError):
    """Uniqueness or time-slot collision. `constraint` names the rule that was hit."""

    status_code = 409
    error = "conflict"

    def __init__(self, message: str, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint
