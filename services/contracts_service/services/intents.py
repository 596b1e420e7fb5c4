"""Contract patch resolution.

A raw update patch (membership plan, start date, status) is resolved into an
ordered list of explicit intents before anything is written:

    Freeze / Unfreeze  ->  Reschedule  ->  ChangeStatus

Order matters: both Unfreeze and Reschedule move ``end_date``, and a
Reschedule (new plan or new start date) always recomputes the whole term, so
it is applied last and wins.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from libs.common.datetime_utils import ensure_utc, shift_by_duration
from services.contracts_service.models import Contract, ContractStatus


@dataclass(frozen=True)
class Freeze:
    at: datetime


@dataclass(frozen=True)
class Unfreeze:
    at: datetime


@dataclass(frozen=True)
class Reschedule:
    membership_plan_id: int
    start_date: date


@dataclass(frozen=True)
class ChangeStatus:
    status: ContractStatus


Intent = Union[Freeze, Unfreeze, Reschedule, ChangeStatus]


def resolve_intents(
    contract: Contract,
    *,
    now: datetime,
    membership_plan_id: Optional[int] = None,
    start_date: Optional[date] = None,
    status: Optional[ContractStatus] = None,
) -> list[Intent]:
    intents: list[Intent] = []
    old_status = contract.status

    if status == ContractStatus.FROZEN and old_status != ContractStatus.FROZEN:
        intents.append(Freeze(at=now))
    elif status == ContractStatus.ACTIVE and old_status == ContractStatus.FROZEN:
        intents.append(Unfreeze(at=now))

    plan_changed = (
        membership_plan_id is not None
        and membership_plan_id != contract.membership_plan_id
    )
    start_changed = start_date is not None and start_date != contract.start_date
    if plan_changed or start_changed:
        intents.append(
            Reschedule(
                membership_plan_id=membership_plan_id or contract.membership_plan_id,
                start_date=start_date or contract.start_date,
            )
        )

    handled = any(isinstance(i, (Freeze, Unfreeze)) for i in intents)
    if status is not None and status != old_status and not handled:
        intents.append(ChangeStatus(status=status))

    return intents


def unfrozen_end_date(contract: Contract, at: datetime) -> date:
    """End date after giving back the time spent frozen."""
    if contract.frozen_at is None:
        return contract.end_date
    return shift_by_duration(contract.end_date, at - ensure_utc(contract.frozen_at))
