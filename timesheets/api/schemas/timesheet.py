"""Timesheet, entry, history, and approval queue schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from timesheets.core.approval.states import AuditAction, TimesheetEvent, TimesheetStatus
from timesheets.db.models import ApprovalType, WorkLocation


class TimeEntryIn(BaseModel):
    project_id: UUID
    work_date: date
    hours_worked: Decimal = Field(..., ge=0, le=24)
    work_location: WorkLocation = WorkLocation.OFFICE
    notes: Optional[str] = Field(None, max_length=2000)


class ReplaceEntriesRequest(BaseModel):
    entries: List[TimeEntryIn]


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    work_date: date
    hours_worked: Decimal
    work_location: WorkLocation
    notes: Optional[str] = None


class TimesheetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    period_start: date
    period_end: date
    status: TimesheetStatus
    is_locked: bool
    submitted_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    approved_by_user_id: Optional[UUID] = None
    return_reason: Optional[str] = None
    total_hours: Decimal
    entries: List[TimeEntryResponse] = []


class TimesheetDetailResponse(TimesheetResponse):
    available_actions: List[TimesheetEvent] = []


class WeekRequest(BaseModel):
    week_start_date: date


class ApproveRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class ReasonRequest(BaseModel):
    reason: str = Field("", max_length=2000)


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sequence: int
    action: AuditAction
    action_by: Optional[UUID] = None
    action_date: datetime
    previous_status: Optional[TimesheetStatus] = None
    new_status: Optional[TimesheetStatus] = None
    notes: Optional[str] = None
    approval_type: Optional[ApprovalType] = None
    on_behalf_of_user_id: Optional[UUID] = None


class PendingApprovalResponse(BaseModel):
    timesheet_id: UUID
    user_id: UUID
    employee_name: Optional[str] = None
    period_start: date
    period_end: date
    submitted_date: datetime
    total_hours: Decimal
    days_waiting: int
    rag_status: str
