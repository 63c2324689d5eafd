"""Timesheet service: the persistence side of the state machine.

Every transition reads the timesheet, recomputes its guard, and commits with
a conditional update keyed on (id, expected status). If another request got
there first the update matches no row and StateConflictError is raised; the
caller re-reads and retries. History is appended only after the conditional
update succeeded, inside the same transaction.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from timesheets.core.audit import AuditTrail
from timesheets.core.dates import is_week_start, now as canonical_now
from timesheets.core.delegation.resolver import DelegationCache, DelegationResolver
from timesheets.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
    WindowError,
)
from timesheets.core.rbac import is_admin
from timesheets.db.models import (
    AuditLogEntry,
    Project,
    TimeEntry,
    Timesheet,
    User,
    WorkLocation,
)
from .machine import TimesheetStateMachine
from .routing import ApprovalRouter
from .states import (
    AuditAction,
    DELETABLE_STATES,
    TimesheetEvent,
    TimesheetStatus,
    TransitionRule,
)
from .window import SubmissionWindowPolicy

logger = logging.getLogger(__name__)

HOURS_STEP = Decimal("0.25")
MAX_HOURS_PER_DAY = Decimal("24")


def _has_hours():
    """True while the timesheet still has at least one stored entry."""
    return select(TimeEntry.id).where(TimeEntry.timesheet_id == Timesheet.id).exists()


@dataclass
class EntryInput:
    """One row of a full entry-set replacement."""
    project_id: UUID
    work_date: date
    hours_worked: Union[Decimal, float, int, str]
    work_location: Union[WorkLocation, str] = WorkLocation.OFFICE
    notes: Optional[str] = None


class TimesheetService:
    """
    High-level service for timesheet workflows.

    Handles:
    - Get-or-create of weekly timesheets
    - Entry replacement (Draft / Returned only)
    - Submit, Withdraw, Approve, Return, Unlock transitions
    - Draft-only delete
    - Historical import of already-approved timesheets
    """

    def __init__(
        self,
        db: Session,
        *,
        cache: Optional[DelegationCache] = None,
        window: Optional[SubmissionWindowPolicy] = None,
    ):
        """
        Initialize the timesheet service.

        Args:
            db: Database session for this request
            cache: Delegation cache used for queue-style reads
            window: Submission window policy
        """
        self.db = db
        self.resolver = DelegationResolver(db, cache=cache)
        self.router = ApprovalRouter(db, resolver=self.resolver)
        self.window = window or SubmissionWindowPolicy()
        self.audit = AuditTrail(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_timesheet(self, timesheet_id: UUID, *, for_update: bool = False) -> Timesheet:
        """Get a timesheet by ID, optionally holding its row lock until commit."""
        query = self.db.query(Timesheet).options(
            selectinload(Timesheet.entries).selectinload(TimeEntry.project),
        ).filter(Timesheet.id == timesheet_id)
        if for_update:
            query = query.with_for_update()
        timesheet = query.first()

        if timesheet is None:
            raise NotFoundError(f"Timesheet {timesheet_id} not found", timesheet_id=timesheet_id)
        return timesheet

    def get_visible_timesheet(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        actor_role=None,
        at: Optional[datetime] = None,
    ) -> Timesheet:
        """Get a timesheet the actor owns, may approve, or administers."""
        timesheet = self.get_timesheet(timesheet_id)
        if timesheet.user_id == actor_id or is_admin(actor_role):
            return timesheet
        if self.resolver.is_authorized_approver(actor_id, timesheet.user_id, at or canonical_now(), fresh=False):
            return timesheet
        raise AuthorizationError("Access denied", timesheet_id=timesheet_id)

    def history(self, timesheet_id: UUID) -> List[AuditLogEntry]:
        return self.audit.query_for(timesheet_id)

    def available_actions(
        self,
        timesheet: Timesheet,
        actor_id: UUID,
        actor_role=None,
        at: Optional[datetime] = None,
    ) -> List[TimesheetEvent]:
        """Events the actor could fire right now. Mirrors what clients may enable."""
        machine = TimesheetStateMachine(
            timesheet.id,
            timesheet.status,
            owner_id=timesheet.user_id,
            actor_id=actor_id,
            actor_is_admin=is_admin(actor_role),
            actor_is_approver=self.resolver.is_authorized_approver(
                actor_id, timesheet.user_id, at or canonical_now(), fresh=False
            ),
        )
        return machine.get_available_transitions()

    # ------------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------------

    def get_or_create_week(self, user_id: UUID, week_start_date: date) -> Timesheet:
        """
        Return the user's timesheet for the week, creating a Draft if needed.

        Raises:
            ValidationError: If the date is not a Sunday
        """
        if not is_week_start(week_start_date):
            raise ValidationError(
                "Week start date must be a Sunday",
                week_start_date=week_start_date.isoformat(),
            )

        existing = self.db.query(Timesheet).filter(
            Timesheet.user_id == user_id,
            Timesheet.period_start == week_start_date,
        ).first()
        if existing is not None:
            return existing

        if self.db.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found", user_id=user_id)

        timesheet = Timesheet(
            user_id=user_id,
            period_start=week_start_date,
            period_end=week_start_date + timedelta(days=6),
            status=TimesheetStatus.DRAFT,
            is_locked=False,
        )
        self.db.add(timesheet)
        try:
            self.db.flush()
        except IntegrityError:
            raise StateConflictError(
                "Timesheet for this week was created concurrently; retry",
            )
        logger.info("Created draft timesheet %s for user %s week %s", timesheet.id, user_id, week_start_date)
        return timesheet

    def replace_entries(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        entries: Iterable[EntryInput],
        *,
        at: Optional[datetime] = None,
    ) -> Timesheet:
        """
        Replace the full entry set of a Draft or Returned timesheet.

        Last write wins for entry content. Editing a Returned timesheet
        moves it back to Draft and records a Modified history entry.

        Raises:
            AuthorizationError: Actor is not the owner
            StateConflictError: Timesheet is Submitted or Approved
            ValidationError: Malformed entries
        """
        at = at or canonical_now()
        timesheet = self.get_timesheet(timesheet_id)

        if timesheet.user_id != actor_id:
            raise AuthorizationError("Only the owner can edit this timesheet", timesheet_id=timesheet_id)

        if timesheet.status == TimesheetStatus.RETURNED:
            machine = self._machine(timesheet, actor_id)
            rule = machine.transition(TimesheetEvent.EDIT)
            new_entries = self._build_entries(timesheet, entries)
            self._compare_and_swap(timesheet, rule, {}, at)
            self._write_entries(timesheet, new_entries)
            self._append_history(timesheet, rule, actor_id, at)
            return timesheet

        if timesheet.status != TimesheetStatus.DRAFT:
            raise StateConflictError(
                f"Cannot edit a timesheet in state {timesheet.status.value}; withdraw or unlock it first",
                timesheet_id=timesheet_id,
                current_status=timesheet.status,
                event=TimesheetEvent.EDIT,
            )

        new_entries = self._build_entries(timesheet, entries)
        # Status is not changing, but the update must still lose to a concurrent submit
        self._guard_status(timesheet, TimesheetStatus.DRAFT, at)
        self._write_entries(timesheet, new_entries)
        return timesheet

    def delete_draft(self, timesheet_id: UUID, actor_id: UUID) -> None:
        """
        Physically delete a Draft timesheet that has never entered the workflow.

        Raises:
            AuthorizationError: Actor is not the owner
            StateConflictError: Not a Draft, or it already has history
        """
        timesheet = self.get_timesheet(timesheet_id)
        if timesheet.user_id != actor_id:
            raise AuthorizationError("Only the owner can delete this timesheet", timesheet_id=timesheet_id)
        if timesheet.status not in DELETABLE_STATES:
            raise StateConflictError(
                f"Cannot delete a timesheet in state {timesheet.status.value}",
                timesheet_id=timesheet_id,
                current_status=timesheet.status,
            )
        if self.audit.query_for(timesheet_id):
            raise StateConflictError(
                "Timesheets that have been submitted before cannot be deleted",
                timesheet_id=timesheet_id,
                current_status=timesheet.status,
            )

        self._guard_status(timesheet, TimesheetStatus.DRAFT, canonical_now())
        self.db.delete(timesheet)
        self.db.flush()
        logger.info("Deleted draft timesheet %s", timesheet_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, timesheet_id: UUID, actor_id: UUID, *, at: Optional[datetime] = None) -> Timesheet:
        """
        Draft → Submitted.

        Raises:
            StateConflictError: Not a Draft, no entries, or zero total hours
            AuthorizationError: Actor is not the owner
            WindowError: Work hours submitted before the weekly cutoff
        """
        at = at or canonical_now()
        # Draft entry replacement updates this row too, so the lock serializes the two
        timesheet = self.get_timesheet(timesheet_id, for_update=True)
        machine = self._machine(timesheet, actor_id)
        machine.check(TimesheetEvent.SUBMIT)

        if not timesheet.entries or timesheet.total_hours <= 0:
            raise StateConflictError(
                "Cannot submit a timesheet without hours",
                timesheet_id=timesheet_id,
                current_status=timesheet.status,
                event=TimesheetEvent.SUBMIT,
            )

        projects_by_id = {e.project_id: e.project for e in timesheet.entries}
        decision = self.window.can_submit(timesheet.period_start, at, timesheet.entries, projects_by_id)
        if not decision.allowed:
            raise WindowError(decision.reason, cutoff=decision.cutoff)

        rule = machine.transition(TimesheetEvent.SUBMIT)
        self._compare_and_swap(timesheet, rule, {
            "submitted_date": at,
            "return_reason": None,
        }, at, guard=_has_hours())
        self._append_history(timesheet, rule, actor_id, at)
        return timesheet

    def withdraw(self, timesheet_id: UUID, actor_id: UUID, *, at: Optional[datetime] = None) -> Timesheet:
        """Submitted → Draft, by the owner."""
        at = at or canonical_now()
        timesheet = self.get_timesheet(timesheet_id)
        rule = self._machine(timesheet, actor_id).transition(TimesheetEvent.WITHDRAW)
        self._compare_and_swap(timesheet, rule, {"submitted_date": None}, at)
        self._append_history(timesheet, rule, actor_id, at)
        return timesheet

    def approve(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        *,
        notes: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Timesheet:
        """
        Submitted → Approved, by a resolved approver.

        Raises:
            StateConflictError: Not Submitted, or a concurrent transition won
            AuthorizationError: Actor is not an approver for the owner
        """
        at = at or canonical_now()
        timesheet = self.get_timesheet(timesheet_id)
        machine = self._machine(timesheet, actor_id)
        machine.require_state(TimesheetEvent.APPROVE)

        authority = self.router.authorize_action(actor_id, timesheet, at)
        machine.actor_is_approver = True
        rule = machine.transition(TimesheetEvent.APPROVE, reason=notes)

        self._compare_and_swap(timesheet, rule, {
            "is_locked": True,
            "approved_date": at,
            "approved_by_user_id": actor_id,
        }, at)
        self._append_history(
            timesheet, rule, actor_id, at,
            notes=notes,
            approval_type=authority.approval_type,
            on_behalf_of_user_id=authority.on_behalf_of_user_id,
        )
        return timesheet

    def return_timesheet(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        reason: str,
        *,
        at: Optional[datetime] = None,
    ) -> Timesheet:
        """
        Submitted → Returned, by a resolved approver, with a reason.

        Raises:
            StateConflictError: Not Submitted, or a concurrent transition won
            AuthorizationError: Actor is not an approver for the owner
            ValidationError: Empty reason
        """
        at = at or canonical_now()
        timesheet = self.get_timesheet(timesheet_id)
        machine = self._machine(timesheet, actor_id)
        machine.require_state(TimesheetEvent.RETURN)

        authority = self.router.authorize_action(actor_id, timesheet, at)
        machine.actor_is_approver = True
        rule = machine.transition(TimesheetEvent.RETURN, reason=reason)

        self._compare_and_swap(timesheet, rule, {"return_reason": reason.strip()}, at)
        self._append_history(
            timesheet, rule, actor_id, at,
            notes=reason.strip(),
            approval_type=authority.approval_type,
            on_behalf_of_user_id=authority.on_behalf_of_user_id,
        )
        return timesheet

    def unlock(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        actor_role,
        reason: str,
        *,
        at: Optional[datetime] = None,
    ) -> Timesheet:
        """
        Approved → Draft, by an administrator, with a reason.

        Raises:
            StateConflictError: Not Approved, or a concurrent transition won
            AuthorizationError: Actor is not an administrator
            ValidationError: Empty reason
        """
        at = at or canonical_now()
        timesheet = self.get_timesheet(timesheet_id)
        machine = self._machine(timesheet, actor_id, actor_is_admin=is_admin(actor_role))
        rule = machine.transition(TimesheetEvent.UNLOCK, reason=reason)

        self._compare_and_swap(timesheet, rule, {
            "is_locked": False,
            "approved_date": None,
            "approved_by_user_id": None,
            "submitted_date": None,
        }, at)
        self._append_history(timesheet, rule, actor_id, at, notes=reason.strip())
        return timesheet

    # ------------------------------------------------------------------
    # Historical import collaborator
    # ------------------------------------------------------------------

    def import_historical_approved(
        self,
        user_id: UUID,
        week_start_date: date,
        entries: Iterable[EntryInput],
        *,
        approved_by_user_id: Optional[UUID],
        approved_date: datetime,
        batch_id: str,
        submitted_date: Optional[datetime] = None,
    ) -> Timesheet:
        """
        Insert an already-approved timesheet from the legacy import pipeline.

        Bypasses the state machine. The row is tagged with its batch id and
        gets a single Created history entry.

        Raises:
            ValidationError: Bad week start, missing batch id, or bad entries
            StateConflictError: The user already has a timesheet for that week
        """
        if not batch_id:
            raise ValidationError("Import batch id is required")
        if not is_week_start(week_start_date):
            raise ValidationError(
                "Week start date must be a Sunday",
                week_start_date=week_start_date.isoformat(),
            )
        if self.db.query(Timesheet.id).filter(
            Timesheet.user_id == user_id,
            Timesheet.period_start == week_start_date,
        ).first() is not None:
            raise StateConflictError(
                f"User {user_id} already has a timesheet for week {week_start_date}",
            )

        timesheet = Timesheet(
            user_id=user_id,
            period_start=week_start_date,
            period_end=week_start_date + timedelta(days=6),
            status=TimesheetStatus.APPROVED,
            is_locked=True,
            submitted_date=submitted_date or approved_date,
            approved_date=approved_date,
            approved_by_user_id=approved_by_user_id,
            import_batch_id=batch_id,
        )
        new_entries = self._build_entries(timesheet, entries, check_visibility=False)
        self.db.add(timesheet)
        self.db.flush()
        self._write_entries(timesheet, new_entries)

        self.audit.append(AuditLogEntry.create_entry(
            timesheet.id,
            AuditAction.CREATED,
            action_by=approved_by_user_id,
            action_date=approved_date,
            new_status=TimesheetStatus.APPROVED,
            notes=f"Imported from batch {batch_id}",
            details={"import_batch_id": batch_id},
        ))
        logger.info("Imported historical timesheet %s (batch %s)", timesheet.id, batch_id)
        return timesheet

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _machine(self, timesheet: Timesheet, actor_id: UUID, *, actor_is_admin: bool = False) -> TimesheetStateMachine:
        return TimesheetStateMachine(
            timesheet.id,
            timesheet.status,
            owner_id=timesheet.user_id,
            actor_id=actor_id,
            actor_is_admin=actor_is_admin,
        )

    def _compare_and_swap(
        self,
        timesheet: Timesheet,
        rule: TransitionRule,
        values: Dict[str, Any],
        at: datetime,
        *,
        guard=None,
    ) -> None:
        """Commit `rule.to_state` only if the stored status is still `rule.from_state`.

        `guard` is an extra condition evaluated in the same statement.
        """
        conditions = [Timesheet.id == timesheet.id, Timesheet.status == rule.from_state]
        if guard is not None:
            conditions.append(guard)
        result = self.db.execute(
            update(Timesheet)
            .where(*conditions)
            .values(status=rule.to_state, updated_at=at, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self._stored_status(timesheet.id)
            logger.info(
                "Lost transition race on timesheet %s: expected %s for %s, found %s",
                timesheet.id, rule.from_state.value, rule.event.value,
                current.value if current else None,
            )
            raise StateConflictError(
                "Timesheet was changed by another request; refresh and retry",
                timesheet_id=timesheet.id,
                current_status=current,
                event=rule.event,
            )
        self.db.refresh(timesheet)
        logger.info(
            "Timesheet %s: %s -> %s (%s)",
            timesheet.id, rule.from_state.value, rule.to_state.value, rule.event.value,
        )

    def _guard_status(self, timesheet: Timesheet, expected: TimesheetStatus, at: datetime) -> None:
        """Conditional touch: fails if the status moved since it was read."""
        result = self.db.execute(
            update(Timesheet)
            .where(Timesheet.id == timesheet.id, Timesheet.status == expected)
            .values(updated_at=at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                "Timesheet was changed by another request; refresh and retry",
                timesheet_id=timesheet.id,
                current_status=self._stored_status(timesheet.id),
            )

    def _stored_status(self, timesheet_id: UUID) -> Optional[TimesheetStatus]:
        """Status as committed now, bypassing the identity map."""
        return self.db.execute(
            select(Timesheet.status).where(Timesheet.id == timesheet_id)
        ).scalar_one_or_none()

    def _append_history(
        self,
        timesheet: Timesheet,
        rule: TransitionRule,
        actor_id: UUID,
        at: datetime,
        **extra: Any,
    ) -> AuditLogEntry:
        return self.audit.append(AuditLogEntry.create_entry(
            timesheet.id,
            rule.audit_action,
            action_by=actor_id,
            action_date=at,
            previous_status=rule.from_state,
            new_status=rule.to_state,
            **extra,
        ))

    def _build_entries(
        self,
        timesheet: Timesheet,
        entries: Iterable[EntryInput],
        *,
        check_visibility: bool = True,
    ) -> List[TimeEntry]:
        """Validate an entry set. Zero-hour rows are dropped, not stored."""
        owner = timesheet.user or self.db.get(User, timesheet.user_id)
        entries = list(entries)

        project_ids = {e.project_id for e in entries}
        projects = {
            p.id: p for p in self.db.query(Project).filter(Project.id.in_(project_ids)).all()
        } if project_ids else {}

        seen = set()
        built = []
        for entry in entries:
            hours = self._parse_hours(entry.hours_worked)

            if not (timesheet.period_start <= entry.work_date <= timesheet.period_end):
                raise ValidationError(
                    f"Work date {entry.work_date} is outside the timesheet week",
                    work_date=entry.work_date.isoformat(),
                )

            key = (entry.project_id, entry.work_date)
            if key in seen:
                raise ValidationError(
                    "Duplicate entry for the same project and day",
                    project_id=entry.project_id,
                    work_date=entry.work_date.isoformat(),
                )
            seen.add(key)

            project = projects.get(entry.project_id)
            if project is None:
                raise ValidationError(f"Unknown project {entry.project_id}", project_id=entry.project_id)
            if check_visibility:
                if not project.is_active:
                    raise ValidationError(f"Project {project.project_number} is inactive", project_id=project.id)
                if not project.is_visible_to(owner):
                    raise ValidationError(
                        f"Project {project.project_number} is not available to this employee",
                        project_id=project.id,
                    )

            try:
                location = WorkLocation(entry.work_location)
            except ValueError:
                raise ValidationError(f"Invalid work location {entry.work_location!r}")

            if hours == 0:
                continue

            built.append(TimeEntry(
                project_id=entry.project_id,
                project=project,
                work_date=entry.work_date,
                hours_worked=hours,
                work_location=location,
                notes=entry.notes,
            ))
        return built

    @staticmethod
    def _parse_hours(value) -> Decimal:
        try:
            hours = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"Invalid hours value {value!r}")
        if not hours.is_finite():
            raise ValidationError(f"Invalid hours value {value!r}")
        if hours < 0 or hours > MAX_HOURS_PER_DAY:
            raise ValidationError("Hours must be between 0 and 24", hours_worked=str(hours))
        if hours % HOURS_STEP != 0:
            raise ValidationError("Hours must be in quarter-hour increments", hours_worked=str(hours))
        return hours

    def _write_entries(self, timesheet: Timesheet, new_entries: List[TimeEntry]) -> None:
        # Old rows must be gone before new ones hit the unique constraint
        timesheet.entries.clear()
        self.db.flush()
        timesheet.entries.extend(new_entries)
        self.db.flush()
