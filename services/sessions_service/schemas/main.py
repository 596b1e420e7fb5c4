from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import ensure_utc
from libs.common.pagination import PaginationMeta
from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.members_service.schemas import PersonSummary, UserSummary
from services.sessions_service.models import SessionStatus


class TrainingSessionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    notes: Optional[str] = None

    trainer_id: int = Field(validation_alias="trainer_user_id")
    client_id: int = Field(validation_alias="client_person_id")
    start_time: datetime = Field(validation_alias="start")
    end_time: datetime = Field(validation_alias="end")

    model_config = ConfigDict(populate_by_name=True)


class TrainingSessionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    notes: Optional[str] = None

    trainer_id: Optional[int] = Field(default=None, validation_alias="trainer_user_id")
    client_id: Optional[int] = Field(default=None, validation_alias="client_person_id")
    start_time: Optional[datetime] = Field(default=None, validation_alias="start")
    end_time: Optional[datetime] = Field(default=None, validation_alias="end")
    status: Optional[SessionStatus] = None

    model_config = ConfigDict(populate_by_name=True)


class TrainingSessionResponse(BaseModel):
    """Read projection of a session. ``status`` is the derived display status."""

    id: int
    title: str
    description: Optional[str] = None
    notes: Optional[str] = None
    start_time: datetime
    end_time: datetime
    trainer_id: int
    client_id: int
    status: SessionStatus
    created_at: datetime
    updated_at: datetime

    trainer: Optional[UserSummary] = None
    client: Optional[PersonSummary] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_time", "end_time", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class TrainingSessionListResponse(BaseModel):
    data: list[TrainingSessionResponse]
    pagination: PaginationMeta


class SessionCancellationResponse(BaseModel):
    success: bool
    message: str
    session: TrainingSessionResponse


class AvailabilityRequest(BaseModel):
    start_time: datetime = Field(validation_alias="start")
    end_time: datetime = Field(validation_alias="end")
    trainer_id: Optional[int] = Field(default=None, validation_alias="trainer_user_id")

    model_config = ConfigDict(populate_by_name=True)


class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: list[TrainingSessionResponse] = []
