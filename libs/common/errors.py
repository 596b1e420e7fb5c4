"""Typed, user-facing errors raised by the service layer.

Service functions raise these instead of ``HTTPException`` so they can be
called from routers, background jobs and tests alike. The HTTP mapping lives
in ``libs.common.error_handler``.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for business-rule failures."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(ServiceError):
    """A referenced entity does not exist."""

    status_code = 404
    code = "not_found"


class InvalidInputError(ServiceError):
    """Precondition or business-rule violation (past dates, no contract...)."""

    status_code = 400
    code = "invalid_input"


class ConflictError(ServiceError):
    """The operation collides with existing state."""

    status_code = 409
    code = "conflict"


class SchedulingConflict(ConflictError):
    """Overlapping training sessions; ``conflicts`` holds the clashing sessions."""

    def __init__(self, message: str, conflicts: Optional[list] = None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])


class InternalError(ServiceError):
    """Unexpected persistence failure, wrapped after rollback."""

    status_code = 500
    code = "internal"
