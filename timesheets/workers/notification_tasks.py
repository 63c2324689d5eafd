"""Celery tasks for workflow notifications."""

from typing import Optional
from uuid import UUID
import logging

from celery import Celery, shared_task
from celery.signals import worker_process_init

from timesheets.db.session import SessionLocal
from timesheets.services.notifications import NotificationEvent, NotificationService
from timesheets.core.config import get_settings
from timesheets.core.logger import setup_logger

logger = logging.getLogger(__name__)
settings = get_settings()

# Initialize Celery
celery_app = Celery(
    'timesheets',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    task_routes={
        'timesheets.workers.notification_tasks.send_timesheet_notification': {'queue': 'notifications'},
    },
    task_default_queue='default',
)


@worker_process_init.connect
def configure_worker_logging(**kwargs):
    setup_logger("timesheets", settings)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_timesheet_notification(
    self,
    event: str,
    timesheet_id: str,
    actor_id: Optional[str] = None,
) -> bool:
    """
    Async task to email the people affected by a timesheet transition.

    Args:
        event: NotificationEvent value
        timesheet_id: Timesheet that changed
        actor_id: User who performed the transition

    Returns:
        True if an email was delivered
    """
    db = SessionLocal()
    try:
        service = NotificationService(db)
        message = service.build_message(
            NotificationEvent(event),
            UUID(timesheet_id),
            UUID(actor_id) if actor_id else None,
        )
        if message is None:
            return False
        return service.send(message)

    except (OSError, ConnectionError) as e:
        logger.warning(f"Notification delivery failed for timesheet {timesheet_id}: {e}")
        raise self.retry(exc=e)

    finally:
        db.close()


def notify(event: NotificationEvent, timesheet_id: UUID, actor_id: Optional[UUID] = None) -> None:
    """Queue a notification. Call only after the transaction has committed."""
    if not settings.notifications_enabled:
        return
    try:
        send_timesheet_notification.delay(
            NotificationEvent(event).value,
            str(timesheet_id),
            str(actor_id) if actor_id else None,
        )
    except Exception:
        # Broker trouble must not fail a committed transition
        logger.exception("Could not queue %s notification for timesheet %s", event, timesheet_id)
