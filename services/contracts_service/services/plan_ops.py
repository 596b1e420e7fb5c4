"""Membership plan catalogue: listing, creation, edits and (de)activation.

Contracts snapshot a plan's price when they are created, so editing a plan
here never touches existing contracts.
"""

from decimal import Decimal
from typing import Optional

from libs.common.errors import ConflictError, InvalidInputError, NotFoundError
from libs.common.logging import get_logger
from libs.common.pagination import PaginationMeta, paginate
from libs.db.session import transaction
from services.contracts_service.models import (
    BOOKABLE_CONTRACT_STATUSES,
    OPEN_CONTRACT_STATUSES,
    Contract,
    MembershipPlan,
)
from services.contracts_service.services.codes import next_code
from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

PLAN_CODE_PREFIX = "M"
UPDATABLE_FIELDS = ("name", "description", "access_days", "validity_days", "price")

# A plan cannot be retired while any of its contracts is still running.
_RUNNING_CONTRACT_STATUSES = tuple(
    dict.fromkeys(OPEN_CONTRACT_STATUSES + BOOKABLE_CONTRACT_STATUSES)
)


def _validate_terms(access_days: int, validity_days: int, price: Decimal) -> None:
    if access_days <= 0:
        raise InvalidInputError("access days must be positive")
    if validity_days <= 0:
        raise InvalidInputError("validity days must be positive")
    if validity_days < access_days:
        raise InvalidInputError("validity days must be at least the access days")
    if price <= 0:
        raise InvalidInputError("price must be positive")


async def _ensure_unique_name(
    db: AsyncSession, name: str, exclude_id: Optional[int] = None
) -> None:
    query = select(MembershipPlan.id).where(
        func.lower(MembershipPlan.name) == name.strip().lower()
    )
    if exclude_id is not None:
        query = query.where(MembershipPlan.id != exclude_id)
    if (await db.execute(query.limit(1))).scalar_one_or_none() is not None:
        raise ConflictError("A membership plan with this name already exists")


async def _lock_plan(db: AsyncSession, plan_id: int) -> MembershipPlan:
    plan = (
        await db.execute(
            select(MembershipPlan)
            .where(MembershipPlan.id == plan_id)
            .with_for_update()
        )
    ).scalar_one_or_none()
    if not plan:
        raise NotFoundError("Membership plan not found")
    return plan


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_plan(db: AsyncSession, plan_id: int) -> MembershipPlan:
    result = await db.execute(
        select(MembershipPlan)
        .where(MembershipPlan.id == plan_id)
        .execution_options(populate_existing=True)
    )
    plan = result.scalar_one_or_none()
    if not plan:
        raise NotFoundError("Membership plan not found")
    return plan


async def list_plans(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[MembershipPlan], PaginationMeta]:
    """Plans ordered by code. ``search`` matches a code prefix or part of the name."""
    query = select(MembershipPlan)
    if search:
        query = query.where(
            or_(
                MembershipPlan.code.ilike(f"{search}%"),
                MembershipPlan.name.ilike(f"%{search}%"),
                MembershipPlan.description.ilike(f"%{search}%"),
            )
        )
    if is_active is not None:
        query = query.where(MembershipPlan.is_active.is_(is_active))

    query = query.order_by(MembershipPlan.code.asc(), MembershipPlan.id.asc())
    rows, meta = await paginate(db, query, page=page, limit=limit)
    return list(rows), meta


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def create_plan(
    db: AsyncSession,
    *,
    name: str,
    access_days: int,
    validity_days: int,
    price: Decimal,
    description: Optional[str] = None,
) -> MembershipPlan:
    """Add an active plan with the next ``M`` code."""
    price = Decimal(price)
    _validate_terms(access_days, validity_days, price)

    async with transaction(db, "membership plan creation"):
        await _ensure_unique_name(db, name)
        code = await next_code(
            db,
            sequence="membership_plans",
            prefix=PLAN_CODE_PREFIX,
            model=MembershipPlan,
        )
        plan = MembershipPlan(
            code=code,
            name=name.strip(),
            description=description,
            access_days=access_days,
            validity_days=validity_days,
            price=price,
            is_active=True,
        )
        db.add(plan)
        await db.flush()

    logger.info(
        "Created membership plan %s (%s, price=%s)", plan.code, plan.name, plan.price
    )
    return await get_plan(db, plan.id)


async def update_plan(db: AsyncSession, plan_id: int, changes: dict) -> MembershipPlan:
    """Edit name, description, term lengths or price.

    The merged values are validated together; existing contracts keep the
    price they were sold at.
    """
    changes = {
        k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None
    }

    async with transaction(db, "membership plan update"):
        plan = await _lock_plan(db, plan_id)

        price = Decimal(changes.get("price", plan.price))
        _validate_terms(
            changes.get("access_days", plan.access_days),
            changes.get("validity_days", plan.validity_days),
            price,
        )
        if "price" in changes:
            changes["price"] = price
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if changes["name"].lower() != plan.name.lower():
                await _ensure_unique_name(db, changes["name"], exclude_id=plan.id)

        for field, value in changes.items():
            setattr(plan, field, value)

    logger.info("Updated membership plan %s: %s", plan.code, sorted(changes))
    return await get_plan(db, plan_id)


async def deactivate_plan(db: AsyncSession, plan_id: int) -> MembershipPlan:
    """Retire a plan. Refused while any of its contracts is still running."""
    async with transaction(db, "membership plan deactivation"):
        plan = await _lock_plan(db, plan_id)
        if not plan.is_active:
            raise InvalidInputError("Membership plan is already inactive")

        running = await db.execute(
            select(
                exists().where(
                    Contract.membership_plan_id == plan.id,
                    Contract.status.in_(_RUNNING_CONTRACT_STATUSES),
                )
            )
        )
        if running.scalar():
            raise InvalidInputError(
                "Membership plan cannot be deactivated while it has active contracts"
            )

        plan.is_active = False

    logger.info("Deactivated membership plan %s", plan.code)
    return await get_plan(db, plan_id)


async def reactivate_plan(db: AsyncSession, plan_id: int) -> MembershipPlan:
    async with transaction(db, "membership plan reactivation"):
        plan = await _lock_plan(db, plan_id)
        if plan.is_active:
            raise InvalidInputError("Membership plan is already active")
        plan.is_active = True

    logger.info("Reactivated membership plan %s", plan.code)
    return await get_plan(db, plan_id)
