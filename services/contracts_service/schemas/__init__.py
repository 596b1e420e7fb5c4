"""Contracts Service schemas package."""

from services.contracts_service.schemas.main import (
    ContractCancellationResponse,
    ContractCreate,
    ContractHistoryResponse,
    ContractListResponse,
    ContractResponse,
    ContractUpdate,
    MembershipPlanCreate,
    MembershipPlanListResponse,
    MembershipPlanResponse,
    MembershipPlanSummary,
    MembershipPlanUpdate,
)

__all__ = [
    "ContractCancellationResponse",
    "ContractCreate",
    "ContractHistoryResponse",
    "ContractListResponse",
    "ContractResponse",
    "ContractUpdate",
    "MembershipPlanCreate",
    "MembershipPlanListResponse",
    "MembershipPlanResponse",
    "MembershipPlanSummary",
    "MembershipPlanUpdate",
]
