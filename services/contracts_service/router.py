from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.config import get_settings
from libs.db.session import get_async_db
from services.contracts_service.models import ContractStatus
from services.contracts_service.schemas import (
    ContractCancellationResponse,
    ContractCreate,
    ContractHistoryResponse,
    ContractListResponse,
    ContractResponse,
    ContractUpdate,
)
from services.contracts_service.services import contract_ops
from services.members_service.schemas import ClientOption

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.get("/", response_model=ContractListResponse)
async def list_contracts(
    page: int = Query(1, ge=1),
    limit: int = Query(get_settings().DEFAULT_PAGE_SIZE, ge=1, le=100),
    search: Optional[str] = None,
    status_filter: Optional[ContractStatus] = Query(None, alias="status"),
    person_id: Optional[int] = None,
    start_from: Optional[date] = None,
    end_until: Optional[date] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """
    List contracts, newest first.
    """
    contracts, pagination = await contract_ops.list_contracts(
        db,
        page=page,
        limit=limit,
        search=search,
        status=status_filter,
        person_id=person_id,
        start_from=start_from,
        end_until=end_until,
    )
    return {"data": contracts, "pagination": pagination}


@router.get("/clients/active", response_model=List[ClientOption])
async def list_clients_with_active_contracts(
    db: AsyncSession = Depends(get_async_db),
):
    """
    Clients that can currently be booked (active contract, active account).
    """
    return await contract_ops.list_clients_with_active_contracts(db)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    return await contract_ops.get_contract(db, contract_id)


@router.get("/{contract_id}/history", response_model=List[ContractHistoryResponse])
async def get_contract_history(
    contract_id: int,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Status history of a contract, newest first.
    """
    return await contract_ops.get_contract_history(db, contract_id)


@router.post("/", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
async def create_contract(
    contract_in: ContractCreate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Create a contract for a person.
    """
    return await contract_ops.create_contract(
        db,
        person_id=contract_in.person_id,
        membership_plan_id=contract_in.membership_plan_id,
        start_date=contract_in.start_date,
        registering_user_id=contract_in.registering_user_id,
    )


@router.patch("/{contract_id}", response_model=ContractResponse)
async def update_contract(
    contract_id: int,
    contract_in: ContractUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Update plan, start date, status (freeze/unfreeze) or reason.
    """
    return await contract_ops.update_contract(
        db,
        contract_id,
        updating_user_id=contract_in.updating_user_id,
        membership_plan_id=contract_in.membership_plan_id,
        start_date=contract_in.start_date,
        status=contract_in.status,
        reason=contract_in.reason,
    )


@router.delete("/{contract_id}", response_model=ContractCancellationResponse)
async def cancel_contract(
    contract_id: int,
    user_id: int = Query(...),
    reason: Optional[str] = None,
    db: AsyncSession = Depends(get_async_db),
):
    """
    Cancel a contract. The record is kept with status cancelled.
    """
    contract = await contract_ops.cancel_contract(
        db, contract_id, user_id=user_id, reason=reason
    )
    return {
        "success": True,
        "message": "Contract cancelled",
        "contract": contract,
    }
