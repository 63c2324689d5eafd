"""Submission window policy.

Work-hour timesheets may only be submitted once the week is (nearly)
complete: from Friday 12:00 of the timesheet's own week. Weeks that contain
only leave (PTO / Holiday) entries may be submitted at any time.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Mapping, Optional

from timesheets.core.config import get_settings
from timesheets.db.models.project import LEAVE_PROJECT_TYPES, ProjectType


@dataclass(frozen=True)
class WindowDecision:
    """Outcome of a submission window check."""
    allowed: bool
    reason: Optional[str] = None
    cutoff: Optional[datetime] = None


class SubmissionWindowPolicy:
    """Pure predicate deciding whether Draft → Submitted may happen now."""
    
    def __init__(self, cutoff_day_offset: Optional[int] = None, cutoff_hour: Optional[int] = None):
        settings = get_settings()
        self.cutoff_day_offset = (
            settings.submission_cutoff_day_offset if cutoff_day_offset is None else cutoff_day_offset
        )
        self.cutoff_hour = settings.submission_cutoff_hour if cutoff_hour is None else cutoff_hour
    
    def cutoff_for(self, week_start: date) -> datetime:
        """Earliest instant a work timesheet for this week may be submitted."""
        return datetime.combine(
            week_start + timedelta(days=self.cutoff_day_offset),
            time(hour=self.cutoff_hour),
        )
    
    def can_submit(
        self,
        week_start: date,
        now: datetime,
        entries: Iterable[Any],
        projects_by_id: Mapping[Any, Any],
    ) -> WindowDecision:
        """
        Decide whether a timesheet may be submitted at `now`.
        
        Args:
            week_start: Sunday the timesheet's week begins on
            now: Current instant, naive in the canonical zone
            entries: Time entries (anything with a `project_id`)
            projects_by_id: Project lookup (anything with a `project_type`)
            
        Returns:
            WindowDecision; when blocked, `reason` names the exact cutoff
        """
        if self._leave_only(entries, projects_by_id):
            return WindowDecision(allowed=True)
        
        cutoff = self.cutoff_for(week_start)
        if now < cutoff:
            return WindowDecision(
                allowed=False,
                reason=(
                    f"Timesheets with work hours cannot be submitted before "
                    f"{cutoff.strftime('%A %Y-%m-%d %H:%M:%S')}"
                ),
                cutoff=cutoff,
            )
        return WindowDecision(allowed=True, cutoff=cutoff)
    
    @staticmethod
    def _leave_only(entries: Iterable[Any], projects_by_id: Mapping[Any, Any]) -> bool:
        entries = list(entries)
        if not entries:
            return False
        for entry in entries:
            project = projects_by_id.get(entry.project_id)
            if project is None or ProjectType(project.project_type) not in LEAVE_PROJECT_TYPES:
                return False
        return True
