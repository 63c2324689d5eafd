"""Timesheet and time entry models.

A timesheet covers one Sunday-aligned week for one user. Its status is only
ever changed by the state machine service through a conditional update.
"""

import uuid
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, Date, Boolean, ForeignKey, Text, Numeric,
    Enum, Uuid, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from timesheets.core.approval.states import TimesheetStatus
from timesheets.core.dates import now as canonical_now
from timesheets.db.base import Base


class WorkLocation(str, PyEnum):
    OFFICE = "Office"
    WFH = "WFH"
    OTHER = "Other"


class Timesheet(Base):
    """
    Weekly timesheet owned by a single user.
    
    `is_locked` is true exactly when the status is Approved.
    """
    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_timesheets_user_period"),
        CheckConstraint(
            "(is_locked = true AND status = 'Approved') OR (is_locked = false AND status <> 'Approved')",
            name="ck_timesheets_lock_matches_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False)
    
    # Workflow state
    status = Column(
        Enum(TimesheetStatus, name="timesheet_status", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TimesheetStatus.DRAFT,
        index=True,
    )
    is_locked = Column(Boolean, nullable=False, default=False)
    
    # Submission / approval tracking
    submitted_date = Column(DateTime, nullable=True, index=True)
    approved_date = Column(DateTime, nullable=True)
    approved_by_user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    return_reason = Column(Text, nullable=True)
    
    # Set only for historical rows inserted by the legacy import pipeline
    import_batch_id = Column(String(100), nullable=True, index=True)
    
    # Timestamps
    created_at = Column(DateTime, default=canonical_now)
    updated_at = Column(DateTime, default=canonical_now, onupdate=canonical_now)
    
    # Relationships
    user = relationship("User", foreign_keys=[user_id], back_populates="timesheets")
    approver = relationship("User", foreign_keys=[approved_by_user_id])
    entries = relationship(
        "TimeEntry",
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="TimeEntry.work_date",
    )
    
    @property
    def total_hours(self) -> Decimal:
        return sum((e.hours_worked for e in self.entries), Decimal("0"))
    
    def __repr__(self) -> str:
        return f"<Timesheet {self.user_id}@{self.period_start} [{self.status}]>"


class TimeEntry(Base):
    """Hours logged against one project on one day of a timesheet's week."""
    __tablename__ = "time_entries"
    __table_args__ = (
        UniqueConstraint("timesheet_id", "project_id", "work_date", name="uq_time_entries_project_day"),
        CheckConstraint("hours_worked > 0 AND hours_worked <= 24", name="ck_time_entries_hours"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    timesheet_id = Column(Uuid, ForeignKey("timesheets.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Uuid, ForeignKey("projects.id"), nullable=False, index=True)
    work_date = Column(Date, nullable=False)
    hours_worked = Column(Numeric(5, 2), nullable=False)
    work_location = Column(
        Enum(WorkLocation, name="work_location", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=WorkLocation.OFFICE,
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=canonical_now)
    
    timesheet = relationship("Timesheet", back_populates="entries")
    project = relationship("Project")
    
    def __repr__(self) -> str:
        return f"<TimeEntry {self.work_date} {self.hours_worked}h>"
