"""Tests for workflow notification emails."""

from datetime import date, datetime
from unittest.mock import MagicMock, patch

from timesheets.core.approval.states import TimesheetStatus
from timesheets.services.notifications import EmailMessage, NotificationEvent, NotificationService
from timesheets.workers import notification_tasks
from tests import factories


class TestBuildMessage:

    def test_submitted_goes_to_approvers(self, db_session, org):
        timesheet = factories.create_timesheet(
            db_session, user=org["alice"], status=TimesheetStatus.SUBMITTED,
            submitted_date=datetime(2024, 6, 7, 13, 0),
            entries=[(org["work"], date(2024, 6, 3), 8)],
        )

        message = NotificationService(db_session).build_message(
            NotificationEvent.SUBMITTED, timesheet.id, org["alice"].id
        )

        assert message.to == [org["manager"].email]
        assert "Alice" in message.subject
        assert "2024-06-02" in message.body
        assert "8" in message.body

    def test_returned_goes_to_owner_with_reason(self, db_session, org):
        timesheet = factories.create_timesheet(db_session, user=org["alice"], status=TimesheetStatus.RETURNED)
        timesheet.return_reason = "Missing Friday"
        db_session.flush()

        message = NotificationService(db_session).build_message(
            NotificationEvent.RETURNED, timesheet.id, org["manager"].id
        )

        assert message.to == [org["alice"].email]
        assert "Missing Friday" in message.body
        assert "Morgan Manager" in message.body

    def test_no_approvers_no_message(self, db_session):
        loner = factories.create_user(db_session)
        timesheet = factories.create_timesheet(db_session, user=loner, status=TimesheetStatus.SUBMITTED)

        assert NotificationService(db_session).build_message(NotificationEvent.SUBMITTED, timesheet.id) is None


class TestSend:

    def test_skipped_without_smtp(self, db_session):
        service = NotificationService(db_session)
        service.settings = service.settings.model_copy(update={"smtp_host": None})
        assert service.send(EmailMessage(to=["a@example.com"], subject="s", body="b")) is False

    def test_delivers_over_smtp(self, db_session):
        service = NotificationService(db_session)
        service.settings = service.settings.model_copy(update={"smtp_host": "mail.local", "smtp_user": None})

        with patch("timesheets.services.notifications.smtplib.SMTP") as smtp:
            server = MagicMock()
            smtp.return_value.__enter__.return_value = server
            assert service.send(EmailMessage(to=["a@example.com"], subject="Hello", body="Body"))

        server.send_message.assert_called_once()


class TestNotify:

    def test_disabled_does_not_queue(self):
        with patch.object(notification_tasks, "send_timesheet_notification") as task:
            notification_tasks.notify(NotificationEvent.APPROVED, "ts-id")
        task.delay.assert_not_called()

    def test_enabled_queues_task(self):
        enabled = notification_tasks.settings.model_copy(update={"notifications_enabled": True})
        with patch.object(notification_tasks, "settings", enabled), \
                patch.object(notification_tasks, "send_timesheet_notification") as task:
            notification_tasks.notify(NotificationEvent.APPROVED, "ts-id", "actor-id")
        task.delay.assert_called_once_with("approved", "ts-id", "actor-id")
