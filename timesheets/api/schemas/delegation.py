"""Delegation schemas."""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DelegationCreate(BaseModel):
    delegate_user_id: UUID
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=500)
    # Empty means all direct reports
    employee_ids: List[UUID] = []


class DelegationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    delegator_id: UUID
    delegate_id: UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[UUID] = None
    scoped_employee_ids: List[UUID] = []
