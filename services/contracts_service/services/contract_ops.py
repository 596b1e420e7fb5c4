"""Contract lifecycle: creation, updates (freeze/unfreeze/reschedule), cancellation.

Every mutating operation runs inside one transaction (``libs.db.session.transaction``)
and appends a ContractHistory row for each committed status change.
"""

from datetime import date, datetime
from typing import Optional, Union

from libs.common.datetime_utils import (
    add_validity_days,
    ensure_utc,
    is_not_in_past,
    local_today,
    utc_now,
)
from libs.common.errors import ConflictError, InvalidInputError, NotFoundError
from libs.common.logging import get_logger
from libs.common.pagination import PaginationMeta, paginate
from libs.db.session import transaction
from services.contracts_service.models import (
    BOOKABLE_CONTRACT_STATUSES,
    OPEN_CONTRACT_STATUSES,
    Contract,
    ContractHistory,
    ContractStatus,
    MembershipPlan,
)
from services.contracts_service.services.codes import next_code
from services.contracts_service.services.intents import (
    ChangeStatus,
    Freeze,
    Reschedule,
    Unfreeze,
    resolve_intents,
    unfrozen_end_date,
)
from services.members_service.models import Person, User
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)

CONTRACT_CODE_PREFIX = "C"
CREATION_REASON = "contract creation"
DEFAULT_UPDATE_REASON = "contract updated"
CANCELLATION_REASON = "contract cancellation"

DUPLICATE_CONTRACT_MESSAGE = "duplicate active contract"


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _is_open_contract_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return "uq_contracts_person_open" in message or "contracts.person_id" in message


def _contract_query():
    return select(Contract).options(
        selectinload(Contract.person).selectinload(Person.user),
        selectinload(Contract.membership_plan),
        selectinload(Contract.created_by),
        selectinload(Contract.updated_by),
        selectinload(Contract.history).selectinload(ContractHistory.changed_by),
    )


def _history(
    contract_id: int,
    previous_status: Optional[ContractStatus],
    new_status: ContractStatus,
    changed_by_id: Optional[int],
    reason: str,
    changed_at: datetime,
) -> ContractHistory:
    return ContractHistory(
        contract_id=contract_id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by_id=changed_by_id,
        reason=reason,
        changed_at=changed_at,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_contract(db: AsyncSession, contract_id: int) -> Contract:
    """Fetch a contract with person, plan, audit users and history loaded."""
    result = await db.execute(
        _contract_query()
        .where(Contract.id == contract_id)
        .execution_options(populate_existing=True)
    )
    contract = result.scalar_one_or_none()
    if not contract:
        raise NotFoundError("Contract not found")
    return contract


async def list_contracts(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[ContractStatus] = None,
    person_id: Optional[int] = None,
    start_from: Optional[date] = None,
    end_until: Optional[date] = None,
) -> tuple[list[Contract], PaginationMeta]:
    """Newest-first page of contracts matching the given filters."""
    query = _contract_query()
    if status:
        query = query.where(Contract.status == status)
    if person_id:
        query = query.where(Contract.person_id == person_id)
    if start_from:
        query = query.where(Contract.start_date >= start_from)
    if end_until:
        query = query.where(Contract.end_date <= end_until)
    if search:
        query = query.where(Contract.code.ilike(f"%{search}%"))

    query = query.order_by(Contract.created_at.desc(), Contract.id.desc())
    rows, meta = await paginate(db, query, page=page, limit=limit)
    return list(rows), meta


async def get_contract_history(
    db: AsyncSession, contract_id: int
) -> list[ContractHistory]:
    """All history rows for a contract, newest first."""
    if await db.get(Contract, contract_id) is None:
        raise NotFoundError("Contract not found")

    result = await db.execute(
        select(ContractHistory)
        .options(selectinload(ContractHistory.changed_by))
        .where(ContractHistory.contract_id == contract_id)
        .order_by(ContractHistory.changed_at.desc(), ContractHistory.id.desc())
    )
    return list(result.scalars().all())


async def has_bookable_contract(db: AsyncSession, person_id: int) -> bool:
    """True if the person holds a contract that allows booking sessions."""
    result = await db.execute(
        select(
            exists().where(
                Contract.person_id == person_id,
                Contract.status.in_(BOOKABLE_CONTRACT_STATUSES),
            )
        )
    )
    return bool(result.scalar())


async def list_clients_with_active_contracts(db: AsyncSession) -> list[dict]:
    """Distinct clients with an active contract and an active user account."""
    result = await db.execute(
        select(Person, User)
        .join(Contract, Contract.person_id == Person.id)
        .join(User, User.id == Person.user_id)
        .where(Contract.status == ContractStatus.ACTIVE, User.is_active.is_(True))
        .order_by(User.last_name, User.first_name)
    )

    clients: dict[int, dict] = {}
    for person, user in result.all():
        clients.setdefault(
            person.id,
            {
                "id": person.id,
                "code": person.code,
                "first_name": user.first_name,
                "last_name": user.last_name,
            },
        )
    return list(clients.values())


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_contract(
    db: AsyncSession,
    *,
    person_id: int,
    membership_plan_id: int,
    start_date: Union[date, str],
    registering_user_id: int,
    now: Optional[datetime] = None,
) -> Contract:
    """Create an active contract for a person.

    Checks, first failure wins:
    1. person exists
    2. membership plan exists
    3. person has no active or frozen contract
    4. start date is today or later (gym-local calendar day)
    """
    now = ensure_utc(now) if now else utc_now()
    start = _as_date(start_date)

    async with transaction(db, "contract creation"):
        # Lock the person row so concurrent creates for the same person queue up
        person = (
            await db.execute(
                select(Person).where(Person.id == person_id).with_for_update()
            )
        ).scalar_one_or_none()
        if not person:
            raise NotFoundError("Person not found")

        plan = await db.get(MembershipPlan, membership_plan_id)
        if not plan:
            raise NotFoundError("Membership plan not found")

        open_contract = await db.execute(
            select(Contract.id)
            .where(
                Contract.person_id == person_id,
                Contract.status.in_(OPEN_CONTRACT_STATUSES),
            )
            .limit(1)
        )
        if open_contract.scalar_one_or_none() is not None:
            raise ConflictError(DUPLICATE_CONTRACT_MESSAGE)

        if not is_not_in_past(start, local_today(now)):
            raise InvalidInputError("start date in past")

        code = await next_code(
            db, sequence="contracts", prefix=CONTRACT_CODE_PREFIX, model=Contract
        )
        contract = Contract(
            code=code,
            person_id=person_id,
            membership_plan_id=plan.id,
            start_date=start,
            end_date=add_validity_days(start, plan.validity_days),
            snapshotted_price=plan.price,
            status=ContractStatus.ACTIVE,
            created_by_id=registering_user_id,
            updated_by_id=registering_user_id,
            created_at=now,
            updated_at=now,
        )
        db.add(contract)
        try:
            await db.flush()
        except IntegrityError as exc:
            if _is_open_contract_violation(exc):
                raise ConflictError(DUPLICATE_CONTRACT_MESSAGE) from exc
            raise

        db.add(
            _history(
                contract.id,
                None,
                ContractStatus.ACTIVE,
                registering_user_id,
                CREATION_REASON,
                now,
            )
        )

    logger.info(
        "Created contract %s for person %s (plan=%s, %s -> %s, price=%s)",
        contract.code,
        person_id,
        plan.id,
        contract.start_date,
        contract.end_date,
        contract.snapshotted_price,
    )
    return await get_contract(db, contract.id)


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


async def update_contract(
    db: AsyncSession,
    contract_id: int,
    *,
    updating_user_id: int,
    membership_plan_id: Optional[int] = None,
    start_date: Optional[Union[date, str]] = None,
    status: Optional[ContractStatus] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Contract:
    """Apply a patch to a contract.

    Freezing stamps ``frozen_at``; unfreezing pushes ``end_date`` forward by the
    time spent frozen. A plan or start-date change recomputes price and term
    from the plan and overrides any end date set by an unfreeze in the same call.
    """
    now = ensure_utc(now) if now else utc_now()
    new_start = _as_date(start_date) if start_date is not None else None
    new_status = ContractStatus(status) if status is not None else None

    async with transaction(db, "contract update"):
        contract = (
            await db.execute(
                select(Contract).where(Contract.id == contract_id).with_for_update()
            )
        ).scalar_one_or_none()
        if not contract:
            raise NotFoundError("Contract not found")

        old_status = contract.status
        if (
            old_status == ContractStatus.CANCELLED
            and new_status is not None
            and new_status != old_status
        ):
            raise InvalidInputError("Cancelled contracts cannot change status")

        intents = resolve_intents(
            contract,
            now=now,
            membership_plan_id=membership_plan_id,
            start_date=new_start,
            status=new_status,
        )

        for intent in intents:
            if isinstance(intent, Freeze):
                contract.frozen_at = intent.at
                contract.status = ContractStatus.FROZEN
            elif isinstance(intent, Unfreeze):
                if contract.frozen_at is None:
                    logger.warning(
                        "Contract %s is frozen without frozen_at; end date kept",
                        contract.code,
                    )
                contract.end_date = unfrozen_end_date(contract, intent.at)
                contract.frozen_at = None
                contract.status = ContractStatus.ACTIVE
            elif isinstance(intent, Reschedule):
                plan = await db.get(MembershipPlan, intent.membership_plan_id)
                if not plan:
                    raise NotFoundError("Membership plan not found")
                contract.membership_plan_id = plan.id
                contract.snapshotted_price = plan.price
                contract.start_date = intent.start_date
                contract.end_date = add_validity_days(
                    intent.start_date, plan.validity_days
                )
            elif isinstance(intent, ChangeStatus):
                if old_status == ContractStatus.FROZEN:
                    # Leaving frozen any way but unfreeze forfeits the credit
                    contract.frozen_at = None
                contract.status = intent.status

        if reason is not None:
            contract.reason = reason
        contract.updated_by_id = updating_user_id
        contract.updated_at = now

        try:
            await db.flush()
        except IntegrityError as exc:
            if _is_open_contract_violation(exc):
                raise ConflictError(DUPLICATE_CONTRACT_MESSAGE) from exc
            raise

        if contract.status != old_status:
            db.add(
                _history(
                    contract.id,
                    old_status,
                    contract.status,
                    updating_user_id,
                    DEFAULT_UPDATE_REASON if reason is None else reason,
                    now,
                )
            )

    if contract.status != old_status:
        logger.info(
            "Contract %s status %s -> %s (end_date=%s)",
            contract.code,
            old_status.value,
            contract.status.value,
            contract.end_date,
        )
    return await get_contract(db, contract_id)


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


async def cancel_contract(
    db: AsyncSession,
    contract_id: int,
    *,
    user_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Contract:
    """Soft-cancel a contract. The row is kept; status becomes cancelled.

    Cancelling an already-cancelled contract writes nothing and logs a warning.
    """
    now = ensure_utc(now) if now else utc_now()

    async with transaction(db, "contract cancellation"):
        contract = (
            await db.execute(
                select(Contract).where(Contract.id == contract_id).with_for_update()
            )
        ).scalar_one_or_none()
        if not contract:
            raise NotFoundError("Contract not found")

        old_status = contract.status
        if old_status == ContractStatus.CANCELLED:
            logger.warning(
                "Contract %s is already cancelled; ignoring repeat cancellation by user %s",
                contract.code,
                user_id,
            )
        else:
            contract.status = ContractStatus.CANCELLED
            contract.frozen_at = None
            contract.updated_by_id = user_id
            contract.updated_at = now
            db.add(
                _history(
                    contract.id,
                    old_status,
                    ContractStatus.CANCELLED,
                    user_id,
                    CANCELLATION_REASON if reason is None else reason,
                    now,
                )
            )
            logger.info(
                "Cancelled contract %s (was %s)", contract.code, old_status.value
            )

    return await get_contract(db, contract_id)
