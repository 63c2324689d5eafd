"""Approval queue API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timesheets.api.deps import get_db, get_current_principal
from timesheets.api.schemas.common import ERROR_RESPONSES
from timesheets.api.schemas.timesheet import PendingApprovalResponse
from timesheets.core.approval.routing import ApprovalRouter
from timesheets.core.approval.states import TimesheetStatus
from timesheets.core.dates import now as canonical_now
from timesheets.core.exceptions import ValidationError
from timesheets.core.security import Principal

router = APIRouter(prefix="/approvals", tags=["approvals"], responses=ERROR_RESPONSES)


@router.get("", response_model=List[PendingApprovalResponse])
async def list_pending_approvals(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    status: TimesheetStatus = Query(TimesheetStatus.SUBMITTED),
):
    """List timesheets awaiting the caller's approval, oldest submission first."""
    if status != TimesheetStatus.SUBMITTED:
        raise ValidationError("Only Submitted timesheets can be listed for approval", status=status)

    pending = ApprovalRouter(db).list_pending_for(principal.user_id, canonical_now())
    return [
        PendingApprovalResponse(
            timesheet_id=p.timesheet.id,
            user_id=p.timesheet.user_id,
            employee_name=p.timesheet.user.name,
            period_start=p.timesheet.period_start,
            period_end=p.timesheet.period_end,
            submitted_date=p.timesheet.submitted_date,
            total_hours=p.timesheet.total_hours,
            days_waiting=p.days_waiting,
            rag_status=p.rag_status.value,
        )
        for p in pending
    ]
