"""Sessions Service schemas package."""

from services.sessions_service.schemas.main import (
    AvailabilityRequest,
    AvailabilityResponse,
    SessionCancellationResponse,
    TrainingSessionCreate,
    TrainingSessionListResponse,
    TrainingSessionResponse,
    TrainingSessionUpdate,
)

__all__ = [
    "AvailabilityRequest",
    "AvailabilityResponse",
    "SessionCancellationResponse",
    "TrainingSessionCreate",
    "TrainingSessionListResponse",
    "TrainingSessionResponse",
    "TrainingSessionUpdate",
]
