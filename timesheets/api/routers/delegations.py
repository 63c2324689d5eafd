"""Delegation API endpoints."""

from typing import Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from timesheets.api.deps import get_db, get_current_principal
from timesheets.api.schemas.common import ERROR_RESPONSES
from timesheets.api.schemas.delegation import DelegationCreate, DelegationResponse
from timesheets.core.delegation import DelegationService
from timesheets.core.security import Principal

router = APIRouter(prefix="/delegations", tags=["delegations"], responses=ERROR_RESPONSES)


@router.post("", response_model=DelegationResponse, status_code=status.HTTP_201_CREATED)
async def create_delegation(
    body: DelegationCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Delegate the caller's approval authority for a date range."""
    delegation = DelegationService(db).create_delegation(
        principal.user_id,
        body.delegate_user_id,
        body.start_date,
        body.end_date,
        reason=body.reason,
        employee_ids=body.employee_ids,
    )
    db.commit()
    return DelegationResponse.model_validate(delegation)


@router.get("", response_model=Dict[str, List[DelegationResponse]])
async def list_delegations(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Delegations the caller has given and received."""
    service = DelegationService(db)
    return {
        "given": [DelegationResponse.model_validate(d) for d in service.list_given(principal.user_id)],
        "received": [DelegationResponse.model_validate(d) for d in service.list_received(principal.user_id)],
    }


@router.get("/active", response_model=List[DelegationResponse])
async def list_active_delegations(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Delegations currently granting the caller approval authority."""
    delegations = DelegationService(db).list_effective_for_delegate(principal.user_id)
    return [DelegationResponse.model_validate(d) for d in delegations]


@router.get("/{delegation_id}", response_model=DelegationResponse)
async def get_delegation(
    delegation_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    delegation = DelegationService(db).get_delegation(delegation_id, principal.user_id, principal.role)
    return DelegationResponse.model_validate(delegation)


@router.delete("/{delegation_id}", response_model=DelegationResponse)
async def revoke_delegation(
    delegation_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Revoke a delegation. Takes effect immediately."""
    delegation = DelegationService(db).revoke_delegation(delegation_id, principal.user_id)
    db.commit()
    return DelegationResponse.model_validate(delegation)
