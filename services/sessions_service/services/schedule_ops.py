"""Training session scheduling: booking, rescheduling, cancellation, calendars.

A trainer and a client are two independent calendars. A booking is refused if
either one already has a non-cancelled session overlapping ``[start, end)``.

Session status is a read-time projection (``derive_status``); the stored
column is only trusted for completed and cancelled rows.
"""

from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from libs.common.datetime_utils import (
    ensure_utc,
    local_day_bounds,
    local_month_bounds,
    local_range_bounds,
    local_today,
    utc_now,
)
from libs.common.emails.sessions import send_booking_confirmation_email
from libs.common.errors import InvalidInputError, NotFoundError, SchedulingConflict
from libs.common.logging import get_logger
from libs.common.pagination import PaginationMeta, paginate
from libs.db.session import transaction
from services.contracts_service.services.contract_ops import has_bookable_contract
from services.members_service.models import Person, Trainer, User
from services.sessions_service.models import (
    TERMINAL_SESSION_STATUSES,
    SessionStatus,
    TrainingSession,
)
from services.sessions_service.schemas import TrainingSessionResponse
from sqlalchemy import and_, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

Notifier = Callable[..., Awaitable[Any]]

UPDATABLE_FIELDS = (
    "title",
    "description",
    "notes",
    "trainer_id",
    "client_id",
    "start_time",
    "end_time",
    "status",
)
_SCHEDULING_FIELDS = ("trainer_id", "client_id", "start_time", "end_time")


# ---------------------------------------------------------------------------
# Derived status
# ---------------------------------------------------------------------------


def derive_status(
    stored: SessionStatus, start: datetime, end: datetime, now: datetime
) -> SessionStatus:
    """Display status of a session at ``now``. Pure; never written back."""
    if stored in TERMINAL_SESSION_STATUSES:
        return stored
    now = ensure_utc(now)
    if now >= ensure_utc(end):
        return SessionStatus.COMPLETED
    if ensure_utc(start) <= now:
        return SessionStatus.IN_PROGRESS
    return SessionStatus.SCHEDULED


def project_session(
    session: TrainingSession, now: Optional[datetime] = None
) -> TrainingSessionResponse:
    """Snapshot a session row with its derived status. The ORM row is untouched."""
    now = now or utc_now()
    projection = TrainingSessionResponse.model_validate(session)
    return projection.model_copy(
        update={
            "status": derive_status(
                session.status, session.start_time, session.end_time, now
            )
        }
    )


def _derived_status_clause(status: SessionStatus, now: datetime):
    """SQL filter selecting rows whose derived status at ``now`` is ``status``."""
    stored_terminal = TrainingSession.status.in_(TERMINAL_SESSION_STATUSES)
    if status == SessionStatus.CANCELLED:
        return TrainingSession.status == SessionStatus.CANCELLED
    if status == SessionStatus.COMPLETED:
        return or_(
            TrainingSession.status == SessionStatus.COMPLETED,
            and_(not_(stored_terminal), TrainingSession.end_time <= now),
        )
    if status == SessionStatus.IN_PROGRESS:
        return and_(
            not_(stored_terminal),
            TrainingSession.start_time <= now,
            TrainingSession.end_time > now,
        )
    return and_(not_(stored_terminal), TrainingSession.start_time > now)


# ---------------------------------------------------------------------------
# Conflict scan
# ---------------------------------------------------------------------------


async def find_conflicts(
    db: AsyncSession,
    *,
    start: datetime,
    end: datetime,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
) -> list[TrainingSession]:
    """Non-cancelled sessions overlapping ``[start, end)``.

    With a trainer and/or client given, only sessions sharing one of those
    resources count. With neither, every overlapping session is returned.
    """
    query = select(TrainingSession).where(
        TrainingSession.status != SessionStatus.CANCELLED,
        TrainingSession.start_time < ensure_utc(end),
        TrainingSession.end_time > ensure_utc(start),
    )

    resources = []
    if trainer_id is not None:
        resources.append(TrainingSession.trainer_id == trainer_id)
    if client_id is not None:
        resources.append(TrainingSession.client_id == client_id)
    if resources:
        query = query.where(or_(*resources))
    if exclude_id is not None:
        query = query.where(TrainingSession.id != exclude_id)

    result = await db.execute(query.order_by(TrainingSession.start_time.asc()))
    return list(result.scalars().all())


async def check_availability(
    db: AsyncSession,
    *,
    start: datetime,
    end: datetime,
    trainer_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Read-only slot check.

    Without a trainer this compares against every session by time alone, which
    is coarser than the per-resource check used when booking.
    """
    start, end = ensure_utc(start), ensure_utc(end)
    if end <= start:
        raise InvalidInputError("end time must be after start time")

    conflicts = await find_conflicts(db, start=start, end=end, trainer_id=trainer_id)
    now = now or utc_now()
    return {
        "available": not conflicts,
        "conflicts": [project_session(c, now) for c in conflicts],
    }


# ---------------------------------------------------------------------------
# Participant checks (rows are locked so bookings per resource serialise)
# ---------------------------------------------------------------------------


async def _lock_trainer(db: AsyncSession, trainer_id: int) -> User:
    user = (
        await db.execute(select(User).where(User.id == trainer_id).with_for_update())
    ).scalar_one_or_none()
    if not user:
        raise NotFoundError("Trainer user not found")
    if not user.is_active:
        raise InvalidInputError("Trainer user is inactive")

    profile = (
        await db.execute(select(Trainer).where(Trainer.user_id == trainer_id))
    ).scalar_one_or_none()
    if not profile or not profile.is_active:
        raise NotFoundError("Trainer profile not found or inactive")
    return user


async def _lock_client(db: AsyncSession, client_id: int) -> Person:
    person = (
        await db.execute(select(Person).where(Person.id == client_id).with_for_update())
    ).scalar_one_or_none()
    if not person:
        raise NotFoundError("Client not found")
    if person.user_id is None or person.user is None:
        raise NotFoundError("Client has no user account")

    if not await has_bookable_contract(db, client_id):
        raise InvalidInputError("no active contract")
    return person


async def _raise_on_conflicts(
    db: AsyncSession,
    *,
    trainer_id: int,
    client_id: int,
    start: datetime,
    end: datetime,
    now: datetime,
    exclude_id: Optional[int] = None,
) -> None:
    conflicts = await find_conflicts(
        db,
        start=start,
        end=end,
        trainer_id=trainer_id,
        client_id=client_id,
        exclude_id=exclude_id,
    )
    if conflicts:
        logger.warning(
            "Scheduling conflict for trainer %s / client %s at %s-%s: sessions %s",
            trainer_id,
            client_id,
            start.isoformat(),
            end.isoformat(),
            [c.id for c in conflicts],
        )
        raise SchedulingConflict(
            "scheduling conflict", [project_session(c, now) for c in conflicts]
        )


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


async def create_session(
    db: AsyncSession,
    *,
    trainer_id: int,
    client_id: int,
    title: str,
    start_time: datetime,
    end_time: datetime,
    description: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    notify: Notifier = send_booking_confirmation_email,
) -> TrainingSessionResponse:
    """Book a session for a trainer and a client.

    Checks, first failure wins (after ``end > start``):
    1. start is not in the past
    2. trainer user account exists and is active
    3. trainer profile exists and is active
    4. client exists and has a user account
    5. client holds an active or about-to-expire contract
    6. neither trainer nor client has an overlapping session

    The confirmation email is sent after commit; its failure never affects
    the booking.
    """
    now = ensure_utc(now) if now else utc_now()
    start, end = ensure_utc(start_time), ensure_utc(end_time)

    async with transaction(db, "session booking"):
        if end <= start:
            raise InvalidInputError("end time must be after start time")
        if start < now:
            raise InvalidInputError("start time in past")

        trainer = await _lock_trainer(db, trainer_id)
        client = await _lock_client(db, client_id)
        await _raise_on_conflicts(
            db,
            trainer_id=trainer_id,
            client_id=client_id,
            start=start,
            end=end,
            now=now,
        )

        session = TrainingSession(
            title=title,
            description=description,
            notes=notes,
            start_time=start,
            end_time=end,
            trainer_id=trainer_id,
            client_id=client_id,
            status=SessionStatus.SCHEDULED,
            created_at=now,
            updated_at=now,
        )
        db.add(session)
        await db.flush()

    logger.info(
        "Booked session %s for trainer %s and client %s (%s - %s)",
        session.id,
        trainer_id,
        client_id,
        start.isoformat(),
        end.isoformat(),
    )

    booked = await get_session(db, session.id, now=now)
    await _send_booking_confirmation(notify, booked, trainer, client)
    return booked


async def _send_booking_confirmation(
    notify: Notifier,
    booked: TrainingSessionResponse,
    trainer: User,
    client: Person,
) -> None:
    client_user = client.user
    if client_user is None or not client_user.email:
        logger.warning("Session %s booked; client has no email on file", booked.id)
        return

    try:
        sent = await notify(
            to_email=client_user.email,
            client_name=client_user.full_name,
            session_title=booked.title,
            start_time=booked.start_time,
            end_time=booked.end_time,
            trainer_name=trainer.full_name,
            description=booked.description,
        )
    except Exception:
        logger.exception("Booking confirmation for session %s failed", booked.id)
        return

    if sent is False:
        logger.warning("Booking confirmation for session %s was not sent", booked.id)


# ---------------------------------------------------------------------------
# Reschedule / cancel
# ---------------------------------------------------------------------------


async def update_session(
    db: AsyncSession,
    session_id: int,
    changes: dict,
    *,
    now: Optional[datetime] = None,
) -> TrainingSessionResponse:
    """Apply a partial update.

    When the time window, trainer or client changes, the conflict scan is
    re-run against the merged values, ignoring this session itself.
    """
    now = ensure_utc(now) if now else utc_now()
    changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
    for key in ("start_time", "end_time"):
        if changes.get(key) is not None:
            changes[key] = ensure_utc(changes[key])

    async with transaction(db, "session update"):
        session = (
            await db.execute(
                select(TrainingSession)
                .where(TrainingSession.id == session_id)
                .with_for_update()
            )
        ).scalar_one_or_none()
        if not session:
            raise NotFoundError("Session not found")
        if session.status == SessionStatus.CANCELLED:
            raise InvalidInputError("Cancelled sessions cannot be modified")

        if changes.get("start_time") is not None and changes["start_time"] < now:
            raise InvalidInputError("start time in past")

        start = changes.get("start_time") or ensure_utc(session.start_time)
        end = changes.get("end_time") or ensure_utc(session.end_time)
        if end <= start:
            raise InvalidInputError("end time must be after start time")

        trainer_id = changes.get("trainer_id") or session.trainer_id
        client_id = changes.get("client_id") or session.client_id

        if trainer_id != session.trainer_id:
            await _lock_trainer(db, trainer_id)
        if client_id != session.client_id:
            await _lock_client(db, client_id)

        rescheduled = (
            start != ensure_utc(session.start_time)
            or end != ensure_utc(session.end_time)
            or trainer_id != session.trainer_id
            or client_id != session.client_id
        )
        if rescheduled:
            await _raise_on_conflicts(
                db,
                trainer_id=trainer_id,
                client_id=client_id,
                start=start,
                end=end,
                now=now,
                exclude_id=session.id,
            )

        window_moved = start != ensure_utc(session.start_time) or end != ensure_utc(
            session.end_time
        )
        for field, value in changes.items():
            if value is None and field in _SCHEDULING_FIELDS + ("title", "status"):
                continue
            setattr(session, field, value)
        # A completed session moved to a new slot has not happened yet
        if (
            window_moved
            and changes.get("status") is None
            and session.status == SessionStatus.COMPLETED
        ):
            session.status = SessionStatus.SCHEDULED
        session.updated_at = now

    if rescheduled:
        logger.info(
            "Rescheduled session %s to %s - %s",
            session_id,
            start.isoformat(),
            end.isoformat(),
        )
    return await get_session(db, session_id, now=now)


async def cancel_session(
    db: AsyncSession, session_id: int, *, now: Optional[datetime] = None
) -> TrainingSessionResponse:
    """Soft-cancel a session. Cancelling twice is a logged no-op."""
    now = ensure_utc(now) if now else utc_now()

    async with transaction(db, "session cancellation"):
        session = (
            await db.execute(
                select(TrainingSession)
                .where(TrainingSession.id == session_id)
                .with_for_update()
            )
        ).scalar_one_or_none()
        if not session:
            raise NotFoundError("Session not found")

        if session.status == SessionStatus.CANCELLED:
            logger.warning("Session %s is already cancelled; ignoring", session_id)
        else:
            session.status = SessionStatus.CANCELLED
            session.updated_at = now
            logger.info("Cancelled session %s", session_id)

    return await get_session(db, session_id, now=now)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_session(
    db: AsyncSession, session_id: int, *, now: Optional[datetime] = None
) -> TrainingSessionResponse:
    result = await db.execute(
        select(TrainingSession)
        .where(TrainingSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if not session:
        raise NotFoundError("Session not found")
    return project_session(session, now)


async def list_sessions(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    status: Optional[SessionStatus] = None,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    start_from: Optional[datetime] = None,
    start_until: Optional[datetime] = None,
    search: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[list[TrainingSessionResponse], PaginationMeta]:
    """Paged sessions ordered by start time. ``status`` filters on derived status."""
    now = ensure_utc(now) if now else utc_now()

    query = select(TrainingSession)
    if status:
        query = query.where(_derived_status_clause(status, now))
    if trainer_id:
        query = query.where(TrainingSession.trainer_id == trainer_id)
    if client_id:
        query = query.where(TrainingSession.client_id == client_id)
    if start_from:
        query = query.where(TrainingSession.start_time >= ensure_utc(start_from))
    if start_until:
        query = query.where(TrainingSession.start_time < ensure_utc(start_until))
    if search:
        query = query.where(TrainingSession.title.ilike(f"%{search}%"))

    query = query.order_by(TrainingSession.start_time.asc(), TrainingSession.id.asc())
    rows, meta = await paginate(db, query, page=page, limit=limit)
    return [project_session(s, now) for s in rows], meta


async def _calendar(
    db: AsyncSession,
    *,
    start: datetime,
    end: Optional[datetime] = None,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    now: datetime,
) -> list[TrainingSessionResponse]:
    query = select(TrainingSession).where(
        TrainingSession.status != SessionStatus.CANCELLED,
        TrainingSession.start_time >= start,
    )
    if end is not None:
        query = query.where(TrainingSession.start_time < end)
    if trainer_id is not None:
        query = query.where(TrainingSession.trainer_id == trainer_id)
    if client_id is not None:
        query = query.where(TrainingSession.client_id == client_id)

    result = await db.execute(
        query.order_by(TrainingSession.start_time.asc(), TrainingSession.id.asc())
    )
    return [project_session(s, now) for s in result.scalars().all()]


async def get_client_schedule(
    db: AsyncSession, client_id: int, *, now: Optional[datetime] = None
) -> list[TrainingSessionResponse]:
    """Upcoming sessions of a client."""
    now = ensure_utc(now) if now else utc_now()
    if await db.get(Person, client_id) is None:
        raise NotFoundError("Client not found")
    return await _calendar(db, start=now, client_id=client_id, now=now)


async def get_trainer_schedule(
    db: AsyncSession, trainer_id: int, *, now: Optional[datetime] = None
) -> list[TrainingSessionResponse]:
    """Upcoming sessions of a trainer (by user account id)."""
    now = ensure_utc(now) if now else utc_now()
    if await db.get(User, trainer_id) is None:
        raise NotFoundError("Trainer user not found")
    return await _calendar(db, start=now, trainer_id=trainer_id, now=now)


async def get_daily_schedule(
    db: AsyncSession,
    day: Optional[date] = None,
    *,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[TrainingSessionResponse]:
    now = ensure_utc(now) if now else utc_now()
    start, end = local_day_bounds(day or local_today(now))
    return await _calendar(
        db, start=start, end=end, trainer_id=trainer_id, client_id=client_id, now=now
    )


async def get_weekly_schedule(
    db: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    *,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[TrainingSessionResponse]:
    """Sessions starting on any local day from ``start_date`` to ``end_date``.

    Both days are inclusive. With only one end given the range spans seven
    days from it; with neither, the current Monday-to-Sunday week is used.
    """
    now = ensure_utc(now) if now else utc_now()
    week = timedelta(days=6)
    if start_date is None and end_date is None:
        today = local_today(now)
        start_date = today - timedelta(days=today.weekday())
    if end_date is None:
        end_date = start_date + week
    elif start_date is None:
        start_date = end_date - week
    if end_date < start_date:
        raise InvalidInputError("end date must not be before start date")

    start, end = local_range_bounds(start_date, end_date)
    return await _calendar(
        db, start=start, end=end, trainer_id=trainer_id, client_id=client_id, now=now
    )


async def get_monthly_schedule(
    db: AsyncSession,
    year: Optional[int] = None,
    month: Optional[int] = None,
    *,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[TrainingSessionResponse]:
    now = ensure_utc(now) if now else utc_now()
    today = local_today(now)
    start, end = local_month_bounds(year or today.year, month or today.month)
    return await _calendar(
        db, start=start, end=end, trainer_id=trainer_id, client_id=client_id, now=now
    )


async def list_active_trainers(db: AsyncSession) -> list[dict]:
    """Bookable trainers: active profile on an active user account."""
    result = await db.execute(
        select(User)
        .join(Trainer, Trainer.user_id == User.id)
        .where(Trainer.is_active.is_(True), User.is_active.is_(True))
        .order_by(User.first_name, User.last_name)
    )
    return [{"id": user.id, "name": user.full_name} for user in result.scalars().all()]
