"""Typed errors raised by the approval engine.

Every rejected operation surfaces one of these with enough context for the
caller to explain the rejection without re-deriving it.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class TimesheetError(Exception):
    """Base class for engine errors."""

    code = "error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "detail": self.message}
        for key, value in self.context.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            elif hasattr(value, "value"):
                value = value.value
            elif value is not None and not isinstance(value, (int, float, bool, str, list)):
                value = str(value)
            payload[key] = value
        return payload


class ValidationError(TimesheetError):
    """Malformed input. The caller must correct it; never retried automatically."""

    code = "validation_error"


class StateConflictError(TimesheetError):
    """A transition guard failed or the compare-and-swap lost a race.

    Safe to retry after re-reading the timesheet.
    """

    code = "state_conflict"

    def __init__(
        self,
        message: str,
        *,
        timesheet_id: Optional[Any] = None,
        current_status: Optional[Any] = None,
        event: Optional[Any] = None,
    ):
        super().__init__(
            message,
            timesheet_id=timesheet_id,
            current_status=current_status,
            event=event,
        )
        self.timesheet_id = timesheet_id
        self.current_status = current_status
        self.event = event


class AuthorizationError(TimesheetError):
    """Actor may not perform the action (not approver, owner, or admin)."""

    code = "authorization_error"


class WindowError(TimesheetError):
    """Submission attempted before the weekly cutoff."""

    code = "window_error"

    def __init__(self, message: str, *, cutoff: datetime):
        super().__init__(message, cutoff=cutoff)
        self.cutoff = cutoff


class NotFoundError(TimesheetError):
    """Unknown timesheet, delegation, user, or project id."""

    code = "not_found"
