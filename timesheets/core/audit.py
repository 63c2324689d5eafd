"""Append-only audit trail for timesheet transitions.

`append` is the only write operation. Entries are read back in
chronological order to reconstruct who did what, and to flag suspicious
sequences such as an approval undone by the approver themselves.
"""

import logging
from dataclasses import dataclass
from typing import List
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from timesheets.core.approval.states import AuditAction
from timesheets.db.models import AuditLogEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditAnomaly:
    """A pair of consecutive history entries worth a second look."""
    kind: str
    first: AuditLogEntry
    second: AuditLogEntry


class AuditTrail:
    """Reads and appends timesheet history entries."""
    
    def __init__(self, db: Session):
        self.db = db
    
    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Append an entry. Callers append only after the transition has been applied."""
        last = self.db.query(func.max(AuditLogEntry.sequence)).filter(
            AuditLogEntry.timesheet_id == entry.timesheet_id
        ).scalar()
        entry.sequence = (last or 0) + 1
        self.db.add(entry)
        self.db.flush()
        logger.info(
            "Audit log: %s on timesheet %s by user %s (%s -> %s)",
            entry.action.value,
            entry.timesheet_id,
            entry.action_by,
            entry.previous_status.value if entry.previous_status else None,
            entry.new_status.value if entry.new_status else None,
        )
        return entry
    
    def query_for(self, timesheet_id: UUID) -> List[AuditLogEntry]:
        """History of a timesheet, oldest first."""
        return self.db.query(AuditLogEntry).filter(
            AuditLogEntry.timesheet_id == timesheet_id
        ).order_by(AuditLogEntry.sequence.asc()).all()
    
    def find_anomalies(self, timesheet_id: UUID) -> List[AuditAnomaly]:
        """Approvals immediately followed by an unlock from the same actor."""
        entries = self.query_for(timesheet_id)
        anomalies = []
        for first, second in zip(entries, entries[1:]):
            if (
                first.action == AuditAction.APPROVED
                and second.action == AuditAction.UNLOCKED
                and first.action_by is not None
                and first.action_by == second.action_by
            ):
                anomalies.append(AuditAnomaly("approve_then_self_unlock", first, second))
        return anomalies
