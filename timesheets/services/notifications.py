"""Email notifications for timesheet workflow events.

Handles:
- Submitted: tells the owner's resolved approvers a timesheet is waiting
- Approved / Returned / Unlocked: tells the owner what happened

Notifications are sent after the transaction commits and never affect the
outcome of a transition.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from jinja2 import Template
from sqlalchemy.orm import Session

from timesheets.core.config import get_settings
from timesheets.core.dates import now as canonical_now
from timesheets.core.delegation.resolver import DelegationResolver
from timesheets.db.models import Timesheet, User

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    RETURNED = "returned"
    UNLOCKED = "unlocked"


EMAIL_TEMPLATES = {
    NotificationEvent.SUBMITTED: {
        "subject": "[Timesheets] {{ owner_name }} submitted the week of {{ period_start }}",
        "body": """
{{ owner_name }} has submitted a timesheet for your approval:

Week: {{ period_start }} to {{ period_end }}
Total hours: {{ total_hours }}

Review it at: {{ review_url }}

---
{{ app_name }}
""",
    },
    NotificationEvent.APPROVED: {
        "subject": "[Timesheets] Week of {{ period_start }} approved",
        "body": """
Your timesheet has been approved:

Week: {{ period_start }} to {{ period_end }}
Approved by: {{ actor_name }}

---
{{ app_name }}
""",
    },
    NotificationEvent.RETURNED: {
        "subject": "[Timesheets] Week of {{ period_start }} returned",
        "body": """
Your timesheet has been returned for changes:

Week: {{ period_start }} to {{ period_end }}
Returned by: {{ actor_name }}
Reason: {{ reason }}

Update it at: {{ review_url }}

---
{{ app_name }}
""",
    },
    NotificationEvent.UNLOCKED: {
        "subject": "[Timesheets] Week of {{ period_start }} unlocked",
        "body": """
Your approved timesheet was unlocked by an administrator and is a draft again:

Week: {{ period_start }} to {{ period_end }}
Unlocked by: {{ actor_name }}

---
{{ app_name }}
""",
    },
}


@dataclass
class EmailMessage:
    to: List[str]
    subject: str
    body: str


class NotificationService:
    """Builds and delivers workflow notification emails."""

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    def build_message(
        self,
        event: NotificationEvent,
        timesheet_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> Optional[EmailMessage]:
        """Render the email for an event, or None if there is nobody to tell."""
        event = NotificationEvent(event)
        timesheet = self.db.get(Timesheet, timesheet_id)
        if timesheet is None:
            logger.warning("Timesheet %s not found, skipping %s notification", timesheet_id, event.value)
            return None

        owner = timesheet.user
        actor = self.db.get(User, actor_id) if actor_id else None

        if event == NotificationEvent.SUBMITTED:
            approver_ids = DelegationResolver(self.db).resolve_approvers(owner, canonical_now())
            recipients = [
                u.email for u in self.db.query(User).filter(User.id.in_(approver_ids)).all()
                if u.is_active
            ] if approver_ids else []
        else:
            recipients = [owner.email]

        if not recipients:
            logger.info("No recipients for %s on timesheet %s", event.value, timesheet_id)
            return None

        context = self._build_context(timesheet, owner, actor)
        template = EMAIL_TEMPLATES[event]
        return EmailMessage(
            to=sorted(recipients),
            subject=Template(template["subject"]).render(**context),
            body=Template(template["body"]).render(**context),
        )

    def send(self, message: EmailMessage) -> bool:
        """Deliver via SMTP. Returns False when SMTP is not configured."""
        if not self.settings.smtp_host:
            logger.warning("SMTP not configured, skipping email delivery")
            return False

        msg = MIMEMultipart()
        msg["From"] = f"{self.settings.smtp_from_name} <{self.settings.smtp_from_email}>"
        msg["To"] = ", ".join(message.to)
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.body, "plain"))

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            if self.settings.smtp_user:
                server.login(self.settings.smtp_user, self.settings.smtp_password)
            server.send_message(msg)

        logger.info("Sent '%s' to %d recipient(s)", message.subject, len(message.to))
        return True

    def _build_context(self, timesheet: Timesheet, owner: User, actor: Optional[User]) -> Dict[str, str]:
        return {
            "app_name": self.settings.app_name,
            "owner_name": owner.name or owner.email,
            "actor_name": (actor.name or actor.email) if actor else "",
            "period_start": timesheet.period_start.isoformat(),
            "period_end": timesheet.period_end.isoformat(),
            "total_hours": str(timesheet.total_hours),
            "reason": timesheet.return_reason or "",
            "review_url": f"{self.settings.app_url}/timesheets/{timesheet.id}",
        }
