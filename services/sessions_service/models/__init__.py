"""Sessions Service models package."""

from services.sessions_service.models.core import TrainingSession
from services.sessions_service.models.enums import (
    TERMINAL_SESSION_STATUSES,
    SessionStatus,
)

__all__ = [
    "SessionStatus",
    "TERMINAL_SESSION_STATUSES",
    "TrainingSession",
]
