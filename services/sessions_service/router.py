from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.members_service.schemas import TrainerOption
from services.sessions_service.models import SessionStatus
from services.sessions_service.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    SessionCancellationResponse,
    TrainingSessionCreate,
    TrainingSessionListResponse,
    TrainingSessionResponse,
    TrainingSessionUpdate,
)
from services.sessions_service.services import schedule_ops

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("/", response_model=TrainingSessionListResponse)
async def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(get_settings().DEFAULT_PAGE_SIZE, ge=1, le=100),
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    start_from: Optional[datetime] = None,
    start_until: Optional[datetime] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """
    List sessions ordered by start time. The status filter uses the derived status.
    """
    sessions, pagination = await schedule_ops.list_sessions(
        db,
        page=page,
        limit=limit,
        status=status_filter,
        trainer_id=trainer_id,
        client_id=client_id,
        start_from=start_from,
        start_until=start_until,
        search=search,
    )
    return {"data": sessions, "pagination": pagination}


@router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(
    availability_in: AvailabilityRequest,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Check whether a time slot is free (optionally for one trainer).
    """
    return await schedule_ops.check_availability(
        db,
        start=availability_in.start_time,
        end=availability_in.end_time,
        trainer_id=availability_in.trainer_id,
    )


@router.get("/daily", response_model=List[TrainingSessionResponse])
async def get_daily_schedule(
    day: Optional[date] = None,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    db: AsyncSession = Depends(get_async_db),
):
    return await schedule_ops.get_daily_schedule(
        db, day, trainer_id=trainer_id, client_id=client_id
    )


@router.get("/weekly", response_model=List[TrainingSessionResponse])
async def get_weekly_schedule(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Sessions between two local days (inclusive). Defaults to the current week.
    """
    return await schedule_ops.get_weekly_schedule(
        db, start_date, end_date, trainer_id=trainer_id, client_id=client_id
    )


@router.get("/monthly", response_model=List[TrainingSessionResponse])
async def get_monthly_schedule(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    trainer_id: Optional[int] = None,
    client_id: Optional[int] = None,
    db: AsyncSession = Depends(get_async_db),
):
    return await schedule_ops.get_monthly_schedule(
        db, year, month, trainer_id=trainer_id, client_id=client_id
    )


@router.get("/trainers/active", response_model=List[TrainerOption])
async def list_active_trainers(
    db: AsyncSession = Depends(get_async_db),
):
    """
    Trainers that can be booked.
    """
    return await schedule_ops.list_active_trainers(db)


@router.get("/trainers/{trainer_id}", response_model=List[TrainingSessionResponse])
async def get_trainer_schedule(
    trainer_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Upcoming sessions of a trainer.
    """
    return await schedule_ops.get_trainer_schedule(db, trainer_id)


@router.get("/clients/{client_id}", response_model=List[TrainingSessionResponse])
async def get_client_schedule(
    client_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Upcoming sessions of a client.
    """
    return await schedule_ops.get_client_schedule(db, client_id)


@router.get("/{session_id}", response_model=TrainingSessionResponse)
async def get_session(
    session_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    return await schedule_ops.get_session(db, session_id)


@router.post(
    "/", response_model=TrainingSessionResponse, status_code=status.HTTP_201_CREATED
)
async def create_session(
    session_in: TrainingSessionCreate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Book a training session.
    """
    return await schedule_ops.create_session(
        db,
        trainer_id=session_in.trainer_id,
        client_id=session_in.client_id,
        title=session_in.title,
        start_time=session_in.start_time,
        end_time=session_in.end_time,
        description=session_in.description,
        notes=session_in.notes,
    )


@router.patch("/{session_id}", response_model=TrainingSessionResponse)
async def update_session(
    session_id: int,
    session_in: TrainingSessionUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Update or reschedule a session.
    """
    return await schedule_ops.update_session(
        db, session_id, session_in.model_dump(exclude_unset=True)
    )


@router.delete("/{session_id}", response_model=SessionCancellationResponse)
async def cancel_session(
    session_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Cancel a session. The record is kept with status cancelled.
    """
    session = await schedule_ops.cancel_session(db, session_id)
    return {"success": True, "message": "Session cancelled", "session": session}
