"""Timesheet history model.

This table is IMMUTABLE - ORM listeners reject UPDATE and DELETE, and on
PostgreSQL database triggers do the same. Entries are permanent so that
"who approved this and when" can always be reconstructed.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional, Dict, Any
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Text, JSON, Enum, Uuid, UniqueConstraint, event
from sqlalchemy.orm import relationship

from timesheets.core.approval.states import AuditAction, TimesheetStatus
from timesheets.core.dates import now as canonical_now
from timesheets.db.base import Base


class ApprovalType(str, PyEnum):
    """How an approver's authority was derived."""
    PRIMARY = "Primary"      # Direct manager
    DELEGATE = "Delegate"    # Acting under an effective delegation


def _enum(enum_cls, name):
    return Enum(enum_cls, name=name, native_enum=False,
                values_callable=lambda e: [m.value for m in e])


class AuditLogEntry(Base):
    """
    Immutable record of one timesheet state transition.
    """
    __tablename__ = "timesheet_history"
    __table_args__ = (
        UniqueConstraint("timesheet_id", "sequence", name="uq_timesheet_history_sequence"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    timesheet_id = Column(Uuid, ForeignKey("timesheets.id", ondelete="RESTRICT"), nullable=False, index=True)
    # Position within the timesheet's history, starting at 1
    sequence = Column(Integer, nullable=False)
    
    action = Column(_enum(AuditAction, "audit_action"), nullable=False, index=True)
    action_by = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    action_date = Column(DateTime, nullable=False, default=canonical_now, index=True)
    
    previous_status = Column(_enum(TimesheetStatus, "timesheet_status"), nullable=True)
    new_status = Column(_enum(TimesheetStatus, "timesheet_status"), nullable=True)
    notes = Column(Text, nullable=True)
    
    # Approve / Return only
    approval_type = Column(_enum(ApprovalType, "approval_type"), nullable=True)
    on_behalf_of_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    
    details = Column(JSON, nullable=True)
    
    # Relationships (read-only for querying)
    actor = relationship("User", foreign_keys=[action_by])
    
    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.action} on {self.timesheet_id} by {self.action_by}>"
    
    @classmethod
    def create_entry(
        cls,
        timesheet_id: uuid.UUID,
        action: AuditAction,
        *,
        action_by: Optional[uuid.UUID] = None,
        action_date: Optional[datetime] = None,
        previous_status: Optional[TimesheetStatus] = None,
        new_status: Optional[TimesheetStatus] = None,
        notes: Optional[str] = None,
        approval_type: Optional[ApprovalType] = None,
        on_behalf_of_user_id: Optional[uuid.UUID] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "AuditLogEntry":
        """
        Factory method to create a new history entry.
        
        Args:
            timesheet_id: Timesheet the transition applied to
            action: Action performed
            action_by: ID of the acting user (None for system actions)
            action_date: When the action committed, in the canonical zone
            previous_status: Status before the transition
            new_status: Status after the transition
            notes: Reason or comment supplied by the actor
            approval_type: Primary or Delegate, for approver actions
            on_behalf_of_user_id: Delegator, when acting as a delegate
            details: Additional context
        """
        return cls(
            timesheet_id=timesheet_id,
            action=action,
            action_by=action_by,
            action_date=action_date or canonical_now(),
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            approval_type=approval_type,
            on_behalf_of_user_id=on_behalf_of_user_id,
            details=details,
        )


class ImmutableAuditLogError(Exception):
    """Raised when code attempts to modify or delete a history entry."""


@event.listens_for(AuditLogEntry, "before_update")
def _prevent_update(mapper, connection, target):
    raise ImmutableAuditLogError("timesheet_history entries are immutable")


@event.listens_for(AuditLogEntry, "before_delete")
def _prevent_delete(mapper, connection, target):
    raise ImmutableAuditLogError("timesheet_history entries cannot be deleted")
