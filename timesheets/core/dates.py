"""Date helpers for Sunday-aligned timesheet weeks and the canonical zone."""

from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from timesheets.core.config import get_settings


def canonical_zone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or get_settings().timezone)


def now(tz_name: Optional[str] = None) -> datetime:
    """Current wall-clock time in the canonical zone, as a naive datetime.

    All persisted timestamps are naive values in this zone.
    """
    return datetime.now(canonical_zone(tz_name)).replace(tzinfo=None)


def is_week_start(day: date) -> bool:
    return day.weekday() == 6


def as_date(at: Union[date, datetime]) -> date:
    return at.date() if isinstance(at, datetime) else at