from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.contracts_service.schemas import (
    MembershipPlanCreate,
    MembershipPlanListResponse,
    MembershipPlanResponse,
    MembershipPlanUpdate,
)
from services.contracts_service.services import plan_ops

router = APIRouter(prefix="/memberships", tags=["memberships"])


@router.get("/", response_model=MembershipPlanListResponse)
async def list_plans(
    page: int = Query(1, ge=1),
    limit: int = Query(get_settings().DEFAULT_PAGE_SIZE, ge=1, le=50),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """
    List membership plans by code. ``search`` matches code, name or description.
    """
    plans, pagination = await plan_ops.list_plans(
        db, page=page, limit=limit, search=search, is_active=is_active
    )
    return {"data": plans, "pagination": pagination}


@router.get("/{plan_id}", response_model=MembershipPlanResponse)
async def get_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    return await plan_ops.get_plan(db, plan_id)


@router.post(
    "/", response_model=MembershipPlanResponse, status_code=status.HTTP_201_CREATED
)
async def create_plan(
    plan_in: MembershipPlanCreate,
    db: AsyncSession = Depends(get_async_db),
):
    return await plan_ops.create_plan(db, **plan_in.model_dump())


@router.patch("/{plan_id}", response_model=MembershipPlanResponse)
async def update_plan(
    plan_id: int,
    plan_in: MembershipPlanUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Edit a plan. Existing contracts keep their snapshotted price.
    """
    return await plan_ops.update_plan(
        db, plan_id, plan_in.model_dump(exclude_unset=True)
    )


@router.delete("/{plan_id}", response_model=MembershipPlanResponse)
async def deactivate_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Deactivate a plan. Refused while it has running contracts.
    """
    return await plan_ops.deactivate_plan(db, plan_id)


@router.patch("/{plan_id}/reactivate", response_model=MembershipPlanResponse)
async def reactivate_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    return await plan_ops.reactivate_plan(db, plan_id)
