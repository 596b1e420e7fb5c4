"""Enum definitions for contracts service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ContractStatus(str, enum.Enum):
    ACTIVE = "active"
    FROZEN = "frozen"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    ABOUT_TO_EXPIRE = "about_to_expire"


# A person may hold at most one contract in these states.
OPEN_CONTRACT_STATUSES = (ContractStatus.ACTIVE, ContractStatus.FROZEN)

# States that allow the client to book training sessions.
BOOKABLE_CONTRACT_STATUSES = (ContractStatus.ACTIVE, ContractStatus.ABOUT_TO_EXPIRE)
