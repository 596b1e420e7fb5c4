"""Integration tests for the contract lifecycle engine.

Tests call contract_ops functions directly with the db_session fixture
against a throwaway SQLite database. ``now`` is injected so calendar checks
are deterministic.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from libs.common.errors import ConflictError, InvalidInputError, NotFoundError
from services.contracts_service.models import (
    CodeSequence,
    Contract,
    ContractHistory,
    ContractStatus,
)
from services.contracts_service.services.contract_ops import (
    cancel_contract,
    create_contract,
    get_contract,
    get_contract_history,
    has_bookable_contract,
    list_clients_with_active_contracts,
    list_contracts,
    update_contract,
)
from services.contracts_service.services.plan_ops import update_plan
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from tests.factories import (
    ContractFactory,
    MembershipPlanFactory,
    PersonFactory,
    UserFactory,
    seed_people,
)

UTC = timezone.utc
# 10:00 in Bogota on Dec 31
CREATED_AT = datetime(2024, 12, 31, 15, 0, tzinfo=UTC)


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _create(db, seed, **overrides):
    kwargs = {
        "person_id": seed["client"].id,
        "membership_plan_id": seed["plan"].id,
        "start_date": "2025-01-01",
        "registering_user_id": seed["staff"].id,
        "now": CREATED_AT,
    }
    kwargs.update(overrides)
    return await create_contract(db, **kwargs)


# ---------------------------------------------------------------------------
# create_contract
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_derives_end_date_and_snapshots_price(db_session):
    """A 30-day plan starting Jan 1 ends Jan 31 and starts one history row."""
    seed = await seed_people(db_session, with_contract=False)

    contract = await _create(db_session, seed)

    assert contract.code == "C0001"
    assert contract.status == ContractStatus.ACTIVE
    assert contract.start_date == date(2025, 1, 1)
    assert contract.end_date == date(2025, 1, 31)
    assert contract.snapshotted_price == Decimal("120000.00")
    assert contract.frozen_at is None
    assert contract.created_by_id == seed["staff"].id
    assert contract.person.user.first_name == "Carl"
    assert contract.membership_plan.validity_days == 30

    assert len(contract.history) == 1
    entry = contract.history[0]
    assert entry.previous_status is None
    assert entry.new_status == ContractStatus.ACTIVE
    assert entry.changed_by_id == seed["staff"].id
    assert entry.reason == "contract creation"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_price_is_not_affected_by_later_plan_changes(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)

    plan = await update_plan(
        db_session,
        seed["plan"].id,
        {"price": Decimal("999999.00"), "validity_days": 90},
    )

    refreshed = await get_contract(db_session, contract.id)
    assert plan.price == Decimal("999999.00")
    assert refreshed.snapshotted_price == Decimal("120000.00")
    assert refreshed.end_date == date(2025, 1, 31)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_accepts_local_today(db_session):
    """22:00 in Bogota on Dec 31 is already Jan 1 in UTC; Dec 31 is still today."""
    seed = await seed_people(db_session, with_contract=False)

    contract = await _create(
        db_session,
        seed,
        start_date=date(2024, 12, 31),
        now=datetime(2025, 1, 1, 3, 0, tzinfo=UTC),
    )

    assert contract.start_date == date(2024, 12, 31)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_rejects_past_start_date(db_session):
    seed = await seed_people(db_session, with_contract=False)

    with pytest.raises(InvalidInputError, match="start date in past"):
        await _create(db_session, seed, start_date="2024-12-30")

    assert await _count(db_session, Contract) == 0
    assert await _count(db_session, ContractHistory) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_missing_person_is_reported_first(db_session):
    seed = await seed_people(db_session, with_contract=False)

    with pytest.raises(NotFoundError, match="Person"):
        await _create(db_session, seed, person_id=9999, membership_plan_id=9999)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_missing_plan(db_session):
    seed = await seed_people(db_session, with_contract=False)

    with pytest.raises(NotFoundError, match="Membership plan"):
        await _create(db_session, seed, membership_plan_id=9999)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_contract_duplicate_leaves_no_trace(db_session):
    """A second open contract is refused and nothing is written."""
    seed = await seed_people(db_session, with_contract=False)
    await _create(db_session, seed)

    with pytest.raises(ConflictError, match="duplicate active contract"):
        await _create(db_session, seed, start_date="2025-03-01")

    assert await _count(db_session, Contract) == 1
    assert await _count(db_session, ContractHistory) == 1
    counter = await db_session.get(CodeSequence, "contracts")
    await db_session.refresh(counter)
    assert counter.last_value == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_duplicate_check_runs_before_start_date_check(db_session):
    seed = await seed_people(db_session, with_contract=False)
    await _create(db_session, seed)

    with pytest.raises(ConflictError):
        await _create(db_session, seed, start_date="2020-01-01")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_frozen_contract_blocks_a_new_one(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.FROZEN,
        now=CREATED_AT,
    )

    with pytest.raises(ConflictError):
        await _create(db_session, seed)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_expired_contract_does_not_block_renewal(db_session):
    seed = await seed_people(db_session, with_contract=False)
    old = ContractFactory.create(
        person_id=seed["client"].id,
        membership_plan_id=seed["plan"].id,
        code="C0001",
        status=ContractStatus.EXPIRED,
    )
    db_session.add(old)
    await db_session.commit()

    renewed = await _create(db_session, seed)

    assert renewed.code == "C0002"
    assert renewed.status == ContractStatus.ACTIVE


@pytest.mark.asyncio
@pytest.mark.integration
async def test_storage_rejects_two_open_contracts_for_one_person(db_session):
    """The partial unique index holds even when the service layer is bypassed."""
    seed = await seed_people(db_session, with_contract=False)
    db_session.add_all(
        [
            ContractFactory.create(
                person_id=seed["client"].id,
                membership_plan_id=seed["plan"].id,
                code="C0001",
            ),
            ContractFactory.create(
                person_id=seed["client"].id,
                membership_plan_id=seed["plan"].id,
                code="C0002",
                status=ContractStatus.FROZEN,
            ),
        ]
    )

    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


# ---------------------------------------------------------------------------
# Codes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_codes_are_sequential_across_people(db_session):
    seed = await seed_people(db_session, with_contract=False)
    other = PersonFactory.create()
    db_session.add(other)
    await db_session.commit()

    first = await _create(db_session, seed)
    second = await _create(db_session, seed, person_id=other.id)

    assert (first.code, second.code) == ("C0001", "C0002")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_code_sequence_continues_from_existing_codes(db_session):
    seed = await seed_people(db_session, with_contract=False)
    legacy_owner = PersonFactory.create()
    db_session.add(legacy_owner)
    await db_session.flush()
    db_session.add(
        ContractFactory.create(
            person_id=legacy_owner.id,
            membership_plan_id=seed["plan"].id,
            code="C0041",
        )
    )
    await db_session.commit()

    contract = await _create(db_session, seed)

    assert contract.code == "C0042"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_code_sequence_falls_back_to_id_for_bad_codes(db_session):
    seed = await seed_people(db_session, with_contract=False)
    legacy_owner = PersonFactory.create()
    db_session.add(legacy_owner)
    await db_session.flush()
    legacy = ContractFactory.create(
        person_id=legacy_owner.id,
        membership_plan_id=seed["plan"].id,
        code="C-TEMP",
    )
    db_session.add(legacy)
    await db_session.commit()

    contract = await _create(db_session, seed)

    assert contract.code == f"C{legacy.id + 1:04d}"


# ---------------------------------------------------------------------------
# update_contract
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_freeze_then_unfreeze_gives_back_frozen_days(db_session):
    """Frozen Jan 10 -> Jan 15 pushes the Jan 31 end date to Feb 5."""
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    staff_id = seed["staff"].id

    frozen = await update_contract(
        db_session,
        contract.id,
        updating_user_id=staff_id,
        status=ContractStatus.FROZEN,
        now=datetime(2025, 1, 10, tzinfo=UTC),
    )
    assert frozen.status == ContractStatus.FROZEN
    assert frozen.frozen_at is not None
    assert frozen.end_date == date(2025, 1, 31)

    active = await update_contract(
        db_session,
        contract.id,
        updating_user_id=staff_id,
        status=ContractStatus.ACTIVE,
        now=datetime(2025, 1, 15, tzinfo=UTC),
    )
    assert active.status == ContractStatus.ACTIVE
    assert active.frozen_at is None
    assert active.end_date == date(2025, 2, 5)
    assert active.updated_by_id == staff_id

    # Newest first: unfreeze, freeze, creation
    transitions = [(h.previous_status, h.new_status) for h in active.history]
    assert transitions == [
        (ContractStatus.FROZEN, ContractStatus.ACTIVE),
        (ContractStatus.ACTIVE, ContractStatus.FROZEN),
        (None, ContractStatus.ACTIVE),
    ]
    assert active.history[0].reason == "contract updated"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_remaining_term_survives_a_freeze(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    freeze_at = datetime(2025, 1, 10, tzinfo=UTC)
    unfreeze_at = datetime(2025, 1, 22, tzinfo=UTC)
    remaining_before = contract.end_date - freeze_at.date()

    await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.FROZEN,
        now=freeze_at,
    )
    active = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.ACTIVE,
        now=unfreeze_at,
    )

    assert active.end_date - unfreeze_at.date() == remaining_before


@pytest.mark.asyncio
@pytest.mark.integration
async def test_plan_change_recomputes_price_and_term(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    quarterly = MembershipPlanFactory.create(
        name="Quarterly", validity_days=90, price=Decimal("300000.00")
    )
    db_session.add(quarterly)
    await db_session.commit()

    updated = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        membership_plan_id=quarterly.id,
        now=CREATED_AT,
    )

    assert updated.membership_plan_id == quarterly.id
    assert updated.snapshotted_price == Decimal("300000.00")
    assert updated.end_date == date(2025, 1, 1) + timedelta(days=90)
    # No status change, no new history
    assert len(updated.history) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_start_date_change_moves_the_whole_term(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)

    updated = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        start_date="2025-02-01",
        now=CREATED_AT,
    )

    assert updated.start_date == date(2025, 2, 1)
    assert updated.end_date == date(2025, 3, 3)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_plan_change_wins_over_unfreeze_shift(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    longer = MembershipPlanFactory.create(validity_days=60)
    db_session.add(longer)
    await db_session.commit()

    await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.FROZEN,
        now=datetime(2025, 1, 10, tzinfo=UTC),
    )
    updated = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.ACTIVE,
        membership_plan_id=longer.id,
        now=datetime(2025, 1, 15, tzinfo=UTC),
    )

    assert updated.status == ContractStatus.ACTIVE
    assert updated.frozen_at is None
    assert updated.end_date == date(2025, 3, 2)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reason_only_update_writes_no_history(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)

    updated = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        reason="Paid in cash",
        now=CREATED_AT,
    )

    assert updated.reason == "Paid in cash"
    assert len(updated.history) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_status_change_uses_given_reason(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)

    updated = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.FROZEN,
        reason="Travelling",
        now=CREATED_AT,
    )

    assert updated.history[0].reason == "Travelling"
    assert updated.reason == "Travelling"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_empty_reason_is_stored_verbatim(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        reason="Paid in cash",
        now=CREATED_AT,
    )

    cleared = await update_contract(
        db_session,
        contract.id,
        updating_user_id=seed["staff"].id,
        status=ContractStatus.FROZEN,
        reason="",
        now=CREATED_AT,
    )

    assert cleared.reason == ""
    assert cleared.history[0].reason == ""


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_missing_contract(db_session):
    seed = await seed_people(db_session, with_contract=False)

    with pytest.raises(NotFoundError):
        await update_contract(
            db_session, 9999, updating_user_id=seed["staff"].id, reason="x"
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_with_missing_plan_rolls_back(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    contract_id = contract.id
    plan_id = seed["plan"].id

    with pytest.raises(NotFoundError):
        await update_contract(
            db_session,
            contract_id,
            updating_user_id=seed["staff"].id,
            membership_plan_id=9999,
            now=CREATED_AT,
        )

    refreshed = await get_contract(db_session, contract_id)
    assert refreshed.membership_plan_id == plan_id


# ---------------------------------------------------------------------------
# cancel_contract
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_contract_keeps_the_row(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)

    cancelled = await cancel_contract(
        db_session, contract.id, user_id=seed["staff"].id
    )

    assert cancelled.status == ContractStatus.CANCELLED
    assert cancelled.history[0].previous_status == ContractStatus.ACTIVE
    assert cancelled.history[0].reason == "contract cancellation"
    assert await _count(db_session, Contract) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancelling_twice_is_a_no_op(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    await cancel_contract(db_session, contract.id, user_id=seed["staff"].id)

    again = await cancel_contract(
        db_session, contract.id, user_id=seed["staff"].id, reason="again"
    )

    assert again.status == ContractStatus.CANCELLED
    assert len(again.history) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancelled_contract_cannot_be_reactivated(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    await cancel_contract(db_session, contract.id, user_id=seed["staff"].id)

    with pytest.raises(InvalidInputError):
        await update_contract(
            db_session,
            contract.id,
            updating_user_id=seed["staff"].id,
            status=ContractStatus.ACTIVE,
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancelled_contract_frees_the_person(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    await cancel_contract(db_session, contract.id, user_id=seed["staff"].id)

    renewed = await _create(db_session, seed)

    assert renewed.status == ContractStatus.ACTIVE


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_missing_contract(db_session):
    with pytest.raises(NotFoundError):
        await cancel_contract(db_session, 9999, user_id=1)


# ---------------------------------------------------------------------------
# History and reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_history_counts_every_status_change_once(db_session):
    seed = await seed_people(db_session, with_contract=False)
    contract = await _create(db_session, seed)
    staff_id = seed["staff"].id

    await update_contract(
        db_session, contract.id, updating_user_id=staff_id,
        status=ContractStatus.FROZEN, now=datetime(2025, 1, 5, tzinfo=UTC),
    )
    await update_contract(
        db_session, contract.id, updating_user_id=staff_id,
        reason="note only", now=datetime(2025, 1, 6, tzinfo=UTC),
    )
    await update_contract(
        db_session, contract.id, updating_user_id=staff_id,
        status=ContractStatus.ACTIVE, now=datetime(2025, 1, 7, tzinfo=UTC),
    )
    await cancel_contract(db_session, contract.id, user_id=staff_id)

    history = await get_contract_history(db_session, contract.id)

    assert len(history) == 4
    assert history[0].new_status == ContractStatus.CANCELLED
    assert history[-1].previous_status is None
    assert history[0].changed_by.first_name == "Front"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_history_of_missing_contract(db_session):
    with pytest.raises(NotFoundError):
        await get_contract_history(db_session, 9999)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_contracts_filters_and_paginates(db_session):
    seed = await seed_people(db_session, with_contract=False)
    people = [PersonFactory.create() for _ in range(3)]
    db_session.add_all(people)
    await db_session.commit()

    for person in [seed["client"], *people]:
        await _create(db_session, seed, person_id=person.id)
    await cancel_contract(db_session, 1, user_id=seed["staff"].id)

    rows, meta = await list_contracts(db_session, page=1, limit=2)
    assert len(rows) == 2
    assert (meta.total, meta.page, meta.limit, meta.total_pages) == (4, 1, 2, 2)

    active, meta = await list_contracts(db_session, status=ContractStatus.ACTIVE)
    assert meta.total == 3
    assert all(c.status == ContractStatus.ACTIVE for c in active)

    searched, _ = await list_contracts(db_session, search="0004")
    assert [c.code for c in searched] == ["C0004"]

    by_person, _ = await list_contracts(db_session, person_id=seed["client"].id)
    assert [c.id for c in by_person] == [1]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_has_bookable_contract(db_session):
    seed = await seed_people(db_session, with_contract=False)
    person_id = seed["client"].id
    assert await has_bookable_contract(db_session, person_id) is False

    contract = ContractFactory.create(
        person_id=person_id,
        membership_plan_id=seed["plan"].id,
        status=ContractStatus.ABOUT_TO_EXPIRE,
    )
    db_session.add(contract)
    await db_session.commit()
    assert await has_bookable_contract(db_session, person_id) is True

    contract.status = ContractStatus.FROZEN
    await db_session.commit()
    assert await has_bookable_contract(db_session, person_id) is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_clients_with_active_contracts(db_session):
    seed = await seed_people(db_session)
    inactive_user = UserFactory.create(first_name="Ina", is_active=False)
    db_session.add(inactive_user)
    await db_session.flush()
    hidden = PersonFactory.create(user_id=inactive_user.id)
    db_session.add(hidden)
    await db_session.flush()
    db_session.add(
        ContractFactory.create(person_id=hidden.id, membership_plan_id=seed["plan"].id)
    )
    await db_session.commit()

    clients = await list_clients_with_active_contracts(db_session)

    assert clients == [
        {
            "id": seed["client"].id,
            "code": seed["client"].code,
            "first_name": "Carl",
            "last_name": "Client",
        }
    ]
