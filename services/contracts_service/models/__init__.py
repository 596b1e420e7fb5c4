"""Contracts Service models package."""

from services.contracts_service.models.core import (
    CodeSequence,
    Contract,
    ContractHistory,
    MembershipPlan,
)
from services.contracts_service.models.enums import (
    BOOKABLE_CONTRACT_STATUSES,
    OPEN_CONTRACT_STATUSES,
    ContractStatus,
)

__all__ = [
    "BOOKABLE_CONTRACT_STATUSES",
    "CodeSequence",
    "Contract",
    "ContractHistory",
    "ContractStatus",
    "MembershipPlan",
    "OPEN_CONTRACT_STATUSES",
]
