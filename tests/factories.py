"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    user = UserFactory.create(email="custom@test.com")
    db_session.add(user)
    await db_session.commit()
"""

import itertools
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

_sequence = itertools.count(1)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _next() -> int:
    return next(_sequence)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:8]}@test.com"


def _next_hour(hours_ahead: int = 24) -> datetime:
    now = _now().replace(minute=0, second=0, microsecond=0)
    return now + timedelta(hours=hours_ahead)


# ---------------------------------------------------------------------------
# Members Service
# ---------------------------------------------------------------------------


class UserFactory:
    @staticmethod
    def create(**overrides):
        from services.members_service.models import User

        defaults = {
            "code": f"U{_next():04d}",
            "first_name": "Test",
            "last_name": "User",
            "email": _unique_email(),
            "phone": "3001234567",
            "is_active": True,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return User(**defaults)


class PersonFactory:
    @staticmethod
    def create(user_id=None, **overrides):
        from services.members_service.models import Person

        defaults = {
            "code": f"P{_next():04d}",
            "user_id": user_id,
            "is_active": True,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return Person(**defaults)


class TrainerFactory:
    @staticmethod
    def create(user_id, **overrides):
        from services.members_service.models import Trainer

        defaults = {
            "code": f"T{_next():04d}",
            "user_id": user_id,
            "specialty": "Strength",
            "is_active": True,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return Trainer(**defaults)


# ---------------------------------------------------------------------------
# Contracts Service
# ---------------------------------------------------------------------------


class MembershipPlanFactory:
    @staticmethod
    def create(**overrides):
        from services.contracts_service.models import MembershipPlan

        defaults = {
            "code": f"M{_next():04d}",
            "name": "Monthly",
            "description": "Unlimited gym access",
            "access_days": 30,
            "validity_days": 30,
            "price": Decimal("120000.00"),
            "is_active": True,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return MembershipPlan(**defaults)


class ContractFactory:
    @staticmethod
    def create(person_id, membership_plan_id, **overrides):
        from services.contracts_service.models import Contract, ContractStatus

        start = overrides.pop("start_date", date.today())
        defaults = {
            "code": f"C{_next():04d}",
            "person_id": person_id,
            "membership_plan_id": membership_plan_id,
            "start_date": start,
            "end_date": start + timedelta(days=30),
            "snapshotted_price": Decimal("120000.00"),
            "status": ContractStatus.ACTIVE,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Contract(**defaults)


# ---------------------------------------------------------------------------
# Sessions Service
# ---------------------------------------------------------------------------


class TrainingSessionFactory:
    @staticmethod
    def create(trainer_id, client_id, **overrides):
        from services.sessions_service.models import SessionStatus, TrainingSession

        start = overrides.pop("start_time", _next_hour())
        defaults = {
            "title": "Personal training",
            "description": "Full body",
            "start_time": start,
            "end_time": start + timedelta(hours=1),
            "trainer_id": trainer_id,
            "client_id": client_id,
            "status": SessionStatus.SCHEDULED,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return TrainingSession(**defaults)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


async def seed_people(db, *, with_contract=True):
    """Insert a staff user, a trainer (user + profile), a client and a plan.

    Returns a dict of the created rows keyed by role.
    """
    staff = UserFactory.create(first_name="Front", last_name="Desk")
    trainer_user = UserFactory.create(first_name="Tina", last_name="Trainer")
    client_user = UserFactory.create(first_name="Carl", last_name="Client")
    plan = MembershipPlanFactory.create()
    db.add_all([staff, trainer_user, client_user, plan])
    await db.flush()

    trainer = TrainerFactory.create(user_id=trainer_user.id)
    client = PersonFactory.create(user_id=client_user.id)
    db.add_all([trainer, client])
    await db.flush()

    contract = None
    if with_contract:
        contract = ContractFactory.create(
            person_id=client.id, membership_plan_id=plan.id
        )
        db.add(contract)

    await db.commit()
    return {
        "staff": staff,
        "trainer_user": trainer_user,
        "trainer": trainer,
        "client_user": client_user,
        "client": client,
        "plan": plan,
        "contract": contract,
    }
