"""Timesheet API endpoints: weekly drafts, entries, and workflow transitions."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from timesheets.api.deps import get_db, get_current_principal
from timesheets.api.schemas.common import ERROR_RESPONSES
from timesheets.api.schemas.timesheet import (
    ApproveRequest,
    HistoryEntryResponse,
    ReasonRequest,
    ReplaceEntriesRequest,
    TimesheetDetailResponse,
    TimesheetResponse,
    WeekRequest,
)
from timesheets.core.approval.service import EntryInput, TimesheetService
from timesheets.core.audit import AuditTrail
from timesheets.core.rbac import UserRole, require_role
from timesheets.core.security import Principal
from timesheets.services.notifications import NotificationEvent
from timesheets.workers.notification_tasks import notify

router = APIRouter(prefix="/timesheets", tags=["timesheets"], responses=ERROR_RESPONSES)


def _detail(service: TimesheetService, timesheet, principal: Principal) -> TimesheetDetailResponse:
    base = TimesheetResponse.model_validate(timesheet)
    return TimesheetDetailResponse(
        **base.model_dump(),
        available_actions=service.available_actions(timesheet, principal.user_id, principal.role),
    )


@router.post("/week", response_model=TimesheetDetailResponse)
async def get_or_create_week(
    body: WeekRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get the caller's timesheet for a week, creating an empty draft if needed."""
    service = TimesheetService(db)
    timesheet = service.get_or_create_week(principal.user_id, body.week_start_date)
    db.commit()
    return _detail(service, timesheet, principal)


@router.get("/{timesheet_id}", response_model=TimesheetDetailResponse)
async def get_timesheet(
    timesheet_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get a timesheet the caller owns, approves, or administers."""
    service = TimesheetService(db)
    timesheet = service.get_visible_timesheet(timesheet_id, principal.user_id, principal.role)
    return _detail(service, timesheet, principal)


@router.get("/{timesheet_id}/history", response_model=List[HistoryEntryResponse])
async def get_history(
    timesheet_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Get the audit history of a timesheet, oldest first."""
    service = TimesheetService(db)
    service.get_visible_timesheet(timesheet_id, principal.user_id, principal.role)
    return [HistoryEntryResponse.model_validate(e) for e in service.history(timesheet_id)]


@router.get("/{timesheet_id}/anomalies")
@require_role(UserRole.TIMESHEET_ADMIN, UserRole.LEADERSHIP)
async def get_anomalies(
    timesheet_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """List suspicious history sequences, such as an approver unlocking their own approval."""
    TimesheetService(db).get_timesheet(timesheet_id)
    return [
        {
            "kind": a.kind,
            "first": HistoryEntryResponse.model_validate(a.first),
            "second": HistoryEntryResponse.model_validate(a.second),
        }
        for a in AuditTrail(db).find_anomalies(timesheet_id)
    ]


@router.put("/{timesheet_id}", response_model=TimesheetDetailResponse)
async def replace_entries(
    timesheet_id: UUID,
    body: ReplaceEntriesRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Replace all entries of a Draft or Returned timesheet."""
    service = TimesheetService(db)
    timesheet = service.replace_entries(
        timesheet_id,
        principal.user_id,
        [EntryInput(**e.model_dump()) for e in body.entries],
    )
    db.commit()
    return _detail(service, timesheet, principal)


@router.delete("/{timesheet_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timesheet(
    timesheet_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Delete a Draft timesheet that was never submitted."""
    TimesheetService(db).delete_draft(timesheet_id, principal.user_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{timesheet_id}/submit", response_model=TimesheetDetailResponse)
async def submit_timesheet(
    timesheet_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Submit a Draft timesheet for approval."""
    service = TimesheetService(db)
    timesheet = service.submit(timesheet_id, principal.user_id)
    db.commit()
    notify(NotificationEvent.SUBMITTED, timesheet.id, principal.user_id)
    return _detail(service, timesheet, principal)


@router.post("/{timesheet_id}/withdraw", response_model=TimesheetDetailResponse)
async def withdraw_timesheet(
    timesheet_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Withdraw a Submitted timesheet back to Draft."""
    service = TimesheetService(db)
    timesheet = service.withdraw(timesheet_id, principal.user_id)
    db.commit()
    return _detail(service, timesheet, principal)


@router.post("/{timesheet_id}/approve", response_model=TimesheetDetailResponse)
async def approve_timesheet(
    timesheet_id: UUID,
    body: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Approve and lock a Submitted timesheet."""
    service = TimesheetService(db)
    timesheet = service.approve(timesheet_id, principal.user_id, notes=body.notes if body else None)
    db.commit()
    notify(NotificationEvent.APPROVED, timesheet.id, principal.user_id)
    return _detail(service, timesheet, principal)


@router.post("/{timesheet_id}/return", response_model=TimesheetDetailResponse)
async def return_timesheet(
    timesheet_id: UUID,
    body: ReasonRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Return a Submitted timesheet to its owner with a reason."""
    service = TimesheetService(db)
    timesheet = service.return_timesheet(timesheet_id, principal.user_id, body.reason)
    db.commit()
    notify(NotificationEvent.RETURNED, timesheet.id, principal.user_id)
    return _detail(service, timesheet, principal)


@router.post("/{timesheet_id}/unlock", response_model=TimesheetDetailResponse)
async def unlock_timesheet(
    timesheet_id: UUID,
    body: ReasonRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Unlock an Approved timesheet back to Draft (administrators only)."""
    service = TimesheetService(db)
    timesheet = service.unlock(timesheet_id, principal.user_id, principal.role, body.reason)
    db.commit()
    notify(NotificationEvent.UNLOCKED, timesheet.id, principal.user_id)
    return _detail(service, timesheet, principal)
