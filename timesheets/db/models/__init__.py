"""Database models for the timesheet service."""

from timesheets.db.models.user import Department, User
from timesheets.db.models.project import (
    Project,
    ProjectType,
    ProjectVisibility,
    LEAVE_PROJECT_TYPES,
)
from timesheets.db.models.timesheet import Timesheet, TimeEntry, WorkLocation
from timesheets.db.models.delegation import Delegation, DelegationAuditLog
from timesheets.db.models.audit import AuditLogEntry, ApprovalType, ImmutableAuditLogError

__all__ = [
    "Department",
    "User",
    "Project",
    "ProjectType",
    "ProjectVisibility",
    "LEAVE_PROJECT_TYPES",
    "Timesheet",
    "TimeEntry",
    "WorkLocation",
    "Delegation",
    "DelegationAuditLog",
    "AuditLogEntry",
    "ApprovalType",
    "ImmutableAuditLogError",
]
