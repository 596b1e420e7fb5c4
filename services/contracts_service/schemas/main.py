from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from libs.common.pagination import PaginationMeta
from pydantic import BaseModel, ConfigDict, Field
from services.contracts_service.models import ContractStatus
from services.members_service.schemas import PersonSummary, UserSummary


class MembershipPlanSummary(BaseModel):
    id: int
    code: str
    name: str
    validity_days: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class ContractHistoryResponse(BaseModel):
    id: int
    contract_id: int
    previous_status: Optional[ContractStatus] = None
    new_status: ContractStatus
    changed_at: datetime
    changed_by_id: Optional[int] = None
    changed_by: Optional[UserSummary] = None
    reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ContractResponse(BaseModel):
    id: int
    code: str
    person_id: int
    membership_plan_id: int
    start_date: date
    end_date: date
    snapshotted_price: Decimal
    status: ContractStatus
    frozen_at: Optional[datetime] = None
    reason: Optional[str] = None
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    person: Optional[PersonSummary] = None
    membership_plan: Optional[MembershipPlanSummary] = None
    created_by: Optional[UserSummary] = None
    updated_by: Optional[UserSummary] = None
    history: list[ContractHistoryResponse] = []

    model_config = ConfigDict(from_attributes=True)


class ContractListResponse(BaseModel):
    data: list[ContractResponse]
    pagination: PaginationMeta


class ContractCreate(BaseModel):
    person_id: int
    membership_plan_id: int = Field(validation_alias="membership_id")
    start_date: date
    registering_user_id: int

    model_config = ConfigDict(populate_by_name=True)


class ContractUpdate(BaseModel):
    membership_plan_id: Optional[int] = Field(
        default=None, validation_alias="membership_id"
    )
    start_date: Optional[date] = None
    status: Optional[ContractStatus] = None
    reason: Optional[str] = None
    updating_user_id: int

    model_config = ConfigDict(populate_by_name=True)


class ContractCancellationResponse(BaseModel):
    success: bool
    message: str
    contract: ContractResponse


# ============================================================================
# MEMBERSHIP PLANS
# ============================================================================


class MembershipPlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    access_days: int = Field(gt=0)
    validity_days: int = Field(gt=0)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class MembershipPlanUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    access_days: Optional[int] = Field(default=None, gt=0)
    validity_days: Optional[int] = Field(default=None, gt=0)
    price: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=10, decimal_places=2
    )


class MembershipPlanResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    access_days: int
    validity_days: int
    price: Decimal
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MembershipPlanListResponse(BaseModel):
    data: list[MembershipPlanResponse]
    pagination: PaginationMeta
