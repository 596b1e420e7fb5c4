from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.members_service.models import Person, User
from services.sessions_service.models.enums import SessionStatus, enum_values
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# TRAINING SESSION
# ============================================================================


class TrainingSession(Base):
    """A trainer-client appointment occupying ``[start_time, end_time)``.

    ``status`` is only trusted for completed/cancelled rows; scheduled and
    in-progress are recomputed from the clock whenever a session is read.
    """

    __tablename__ = "training_sessions"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="end_after_start"),
        Index("ix_training_sessions_trainer_window", "trainer_id", "start_time", "end_time"),
        Index("ix_training_sessions_client_window", "client_id", "start_time", "end_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # === Basic Info ===
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # === Timing ===
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # === Participants ===
    # The trainer's user account (not the trainer profile row)
    trainer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    client_id: Mapped[int] = mapped_column(ForeignKey("persons.id"), nullable=False)

    status: Mapped[SessionStatus] = mapped_column(
        SAEnum(
            SessionStatus,
            name="training_session_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=SessionStatus.SCHEDULED,
        server_default="scheduled",
    )

    # === Timestamps ===
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    # === Relationships ===
    trainer: Mapped["User"] = relationship(lazy="selectin")
    client: Mapped["Person"] = relationship(lazy="selectin")

    def __repr__(self):
        return f"<TrainingSession {self.title} ({self.status.value}) at {self.start_time}>"
