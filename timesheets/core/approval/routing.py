"""Approval routing: approver work queues and approve/return authorization."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from timesheets.core.config import get_settings
from timesheets.core.delegation.resolver import Authority, DelegationCache, DelegationResolver
from timesheets.core.exceptions import AuthorizationError
from timesheets.db.models import Timesheet
from .states import TimesheetStatus


class RagStatus(str, Enum):
    """Escalation colour for a waiting submission. Display only."""
    GREEN = "green"
    AMBER = "amber"
    RED = "red"


@dataclass(frozen=True)
class PendingApproval:
    """A submitted timesheet in an approver's queue."""
    timesheet: Timesheet
    days_waiting: int
    rag_status: RagStatus


def rag_for(days_waiting: int, warning_days: Optional[int] = None, critical_days: Optional[int] = None) -> RagStatus:
    settings = get_settings()
    warning_days = settings.rag_warning_days if warning_days is None else warning_days
    critical_days = settings.rag_critical_days if critical_days is None else critical_days
    if days_waiting >= critical_days:
        return RagStatus.RED
    if days_waiting >= warning_days:
        return RagStatus.AMBER
    return RagStatus.GREEN


class ApprovalRouter:
    """
    Builds approver queues and authorizes approver actions.
    
    Queue building may use cached delegation snapshots. `authorize_action`
    always re-reads so that a revoked delegation takes effect immediately.
    """
    
    def __init__(self, db: Session, resolver: Optional[DelegationResolver] = None,
                 cache: Optional[DelegationCache] = None):
        self.db = db
        self.resolver = resolver or DelegationResolver(db, cache=cache)
    
    def list_pending_for(self, actor_id: UUID, at: datetime) -> List[PendingApproval]:
        """
        Submitted timesheets the actor may approve at `at`, oldest submission first.
        """
        candidates = self.resolver.candidate_employees(actor_id, at)
        if not candidates:
            return []
        
        timesheets = self.db.query(Timesheet).options(
            selectinload(Timesheet.user),
            selectinload(Timesheet.entries),
        ).filter(
            Timesheet.user_id.in_(candidates),
            Timesheet.status == TimesheetStatus.SUBMITTED,
        ).all()
        
        pending = []
        approvers_by_user = {}
        for ts in timesheets:
            if ts.user_id not in approvers_by_user:
                approvers_by_user[ts.user_id] = self.resolver.resolve_approvers(ts.user, at, fresh=False)
            if actor_id not in approvers_by_user[ts.user_id]:
                continue
            days_waiting = max((at - ts.submitted_date).days, 0)
            pending.append(PendingApproval(ts, days_waiting, rag_for(days_waiting)))
        
        pending.sort(key=lambda p: (p.timesheet.submitted_date, str(p.timesheet.id)))
        return pending
    
    def authorize_action(self, actor_id: UUID, timesheet: Timesheet, at: datetime) -> Authority:
        """
        Ensure the actor may approve or return the timesheet at `at`.
        
        Runs inside the caller's transaction, right before the conditional update.
        
        Raises:
            AuthorizationError: The actor is not among the resolved approvers
        """
        authority = self.resolver.authority_for(actor_id, timesheet.user_id, at)
        if authority is None:
            raise AuthorizationError(
                "You are not authorized to act on this timesheet",
                timesheet_id=timesheet.id,
            )
        return authority
