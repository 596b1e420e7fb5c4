"""Members Service models package."""

from services.members_service.models.core import Person, Trainer, User

__all__ = [
    "Person",
    "Trainer",
    "User",
]
