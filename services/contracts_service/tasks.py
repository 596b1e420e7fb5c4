"""Background tasks for contracts service automation."""

from datetime import date, timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import local_today, utc_now
from libs.common.logging import get_logger
from libs.db.session import get_async_db, transaction
from services.contracts_service.models import Contract, ContractHistory, ContractStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

EXPIRY_REASON = "automatic expiry"
EXPIRY_WARNING_REASON = "contract about to expire"


async def transition_contract_statuses(
    db: AsyncSession, today: Optional[date] = None
) -> dict[str, int]:
    """
    Materialise the date-derived contract statuses:
    - ACTIVE / ABOUT_TO_EXPIRE -> EXPIRED once end_date has passed
    - ACTIVE -> ABOUT_TO_EXPIRE when end_date falls inside the warning window

    Frozen contracts are left alone; their end date is still moving.
    Each transition appends a history row with no acting user.
    """
    today = today or local_today()
    warning_until = today + timedelta(days=get_settings().CONTRACT_EXPIRY_WARNING_DAYS)
    now = utc_now()

    async with transaction(db, "contract expiry sweep"):
        result = await db.execute(
            select(Contract)
            .where(
                Contract.status.in_(
                    [ContractStatus.ACTIVE, ContractStatus.ABOUT_TO_EXPIRE]
                ),
                Contract.end_date < today,
            )
            .with_for_update()
        )
        expired = result.scalars().all()
        for contract in expired:
            db.add(
                ContractHistory(
                    contract_id=contract.id,
                    previous_status=contract.status,
                    new_status=ContractStatus.EXPIRED,
                    changed_at=now,
                    reason=EXPIRY_REASON,
                )
            )
            contract.status = ContractStatus.EXPIRED
            contract.updated_at = now
            logger.info(f"Contract {contract.code} expired (end_date={contract.end_date})")

        result = await db.execute(
            select(Contract)
            .where(
                Contract.status == ContractStatus.ACTIVE,
                Contract.end_date >= today,
                Contract.end_date <= warning_until,
            )
            .with_for_update()
        )
        expiring = result.scalars().all()
        for contract in expiring:
            db.add(
                ContractHistory(
                    contract_id=contract.id,
                    previous_status=ContractStatus.ACTIVE,
                    new_status=ContractStatus.ABOUT_TO_EXPIRE,
                    changed_at=now,
                    reason=EXPIRY_WARNING_REASON,
                )
            )
            contract.status = ContractStatus.ABOUT_TO_EXPIRE
            contract.updated_at = now
            logger.info(
                f"Contract {contract.code} is about to expire (end_date={contract.end_date})"
            )

    counts = {"expired": len(expired), "about_to_expire": len(expiring)}
    if expired or expiring:
        logger.info(
            f"Contract status transitions completed: {counts['expired']} expired, "
            f"{counts['about_to_expire']} about to expire"
        )
    return counts


async def run_contract_expiry_sweep() -> None:
    """Open a session and run the sweep once. Used by the ARQ worker."""
    async for db in get_async_db():
        await transition_contract_statuses(db)
        break
