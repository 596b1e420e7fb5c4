"""Members Service schemas package."""

from services.members_service.schemas.main import (
    ClientOption,
    PersonSummary,
    TrainerOption,
    UserSummary,
)

__all__ = [
    "ClientOption",
    "PersonSummary",
    "TrainerOption",
    "UserSummary",
]
