from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PersonSummary(BaseModel):
    id: int
    code: str
    user: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class TrainerOption(BaseModel):
    """Trainer entry for booking pickers: user id plus display name."""

    id: int
    name: str


class ClientOption(BaseModel):
    """Client entry for booking pickers."""

    id: int
    code: str
    first_name: str
    last_name: str
