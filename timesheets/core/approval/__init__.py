"""Timesheet approval workflow.

Implements the timesheet state machine, the submission window, and the
approver queue.
"""

from .states import TimesheetStatus, TimesheetEvent, AuditAction, VALID_TRANSITIONS
from .machine import TimesheetStateMachine

__all__ = [
    "TimesheetStatus",
    "TimesheetEvent",
    "AuditAction",
    "VALID_TRANSITIONS",
    "TimesheetStateMachine",
]
