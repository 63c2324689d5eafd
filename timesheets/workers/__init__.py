"""Celery workers for the timesheet engine."""

from timesheets.workers.notification_tasks import (
    celery_app,
    send_timesheet_notification,
    notify,
)

__all__ = [
    "celery_app",
    "send_timesheet_notification",
    "notify",
]
