from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.contracts_service.models.enums import ContractStatus, enum_values
from services.members_service.models import Person, User
from sqlalchemy import Boolean, CheckConstraint, Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

_open_statuses_clause = text("status IN ('active', 'frozen')")


def _contract_status_enum(name: str) -> SAEnum:
    return SAEnum(
        ContractStatus,
        name=name,
        values_callable=enum_values,
        validate_strings=True,
    )


# ============================================================================
# MEMBERSHIP PLAN
# ============================================================================


class MembershipPlan(Base):
    """A sellable plan. Contracts snapshot its price at creation time."""

    __tablename__ = "membership_plans"
    __table_args__ = (
        CheckConstraint("validity_days > 0", name="validity_days_positive"),
        CheckConstraint("price > 0", name="price_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    access_days: Mapped[int] = mapped_column(Integer, nullable=False)
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


# ============================================================================
# CONTRACT
# ============================================================================


class Contract(Base):
    """A person's subscription to a membership plan."""

    __tablename__ = "contracts"
    __table_args__ = (
        # At most one active-or-frozen contract per person, enforced by storage.
        Index(
            "uq_contracts_person_open",
            "person_id",
            unique=True,
            postgresql_where=_open_statuses_clause,
            sqlite_where=_open_statuses_clause,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)

    person_id: Mapped[int] = mapped_column(
        ForeignKey("persons.id"), index=True, nullable=False
    )
    membership_plan_id: Mapped[int] = mapped_column(
        ForeignKey("membership_plans.id"), nullable=False
    )

    # === Term ===
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    snapshotted_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # === State ===
    status: Mapped[ContractStatus] = mapped_column(
        _contract_status_enum("contract_status_enum"),
        nullable=False,
        default=ContractStatus.ACTIVE,
    )
    frozen_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # === Audit ===
    created_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    updated_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    # Relationships
    person: Mapped["Person"] = relationship(lazy="selectin")
    membership_plan: Mapped["MembershipPlan"] = relationship(lazy="selectin")
    created_by: Mapped[Optional["User"]] = relationship(
        foreign_keys=[created_by_id], lazy="selectin"
    )
    updated_by: Mapped[Optional["User"]] = relationship(
        foreign_keys=[updated_by_id], lazy="selectin"
    )
    history: Mapped[list["ContractHistory"]] = relationship(
        back_populates="contract",
        lazy="selectin",
        order_by="ContractHistory.id.desc()",
    )


class ContractHistory(Base):
    """Append-only audit row, one per committed status transition."""

    __tablename__ = "contract_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id"), index=True, nullable=False
    )
    previous_status: Mapped[Optional[ContractStatus]] = mapped_column(
        _contract_status_enum("contract_history_previous_status_enum"),
        nullable=True,
    )
    new_status: Mapped[ContractStatus] = mapped_column(
        _contract_status_enum("contract_history_new_status_enum"),
        nullable=False,
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    changed_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    contract: Mapped["Contract"] = relationship(back_populates="history")
    changed_by: Mapped[Optional["User"]] = relationship(lazy="selectin")


# ============================================================================
# CODE SEQUENCES
# ============================================================================


class CodeSequence(Base):
    """Monotonic counter behind human-readable codes such as ``C0001``."""

    __tablename__ = "code_sequences"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
