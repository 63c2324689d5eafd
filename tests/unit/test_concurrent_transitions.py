"""Tests for compare-and-swap transitions across concurrent sessions."""

import pytest

from timesheets.core.approval.service import EntryInput, TimesheetService
from timesheets.core.approval.states import AuditAction, TimesheetStatus
from timesheets.core.exceptions import StateConflictError
from timesheets.db.models import AuditLogEntry, Timesheet
from tests import factories
from tests.factories import AFTER_CUTOFF, BEFORE_CUTOFF, WEEK_START


@pytest.fixture
def submitted(db_session, org, cache):
    factories.create_delegation(db_session, delegator=org["manager"], delegate=org["delegate"])
    service = TimesheetService(db_session, cache=cache)
    timesheet = service.get_or_create_week(org["alice"].id, WEEK_START)
    service.replace_entries(
        timesheet.id, org["alice"].id,
        [EntryInput(org["work"].id, WEEK_START.replace(day=3), 8)],
        at=BEFORE_CUTOFF,
    )
    service.submit(timesheet.id, org["alice"].id, at=AFTER_CUTOFF)
    db_session.commit()
    return timesheet.id


@pytest.fixture
def filled_draft(db_session, org, cache):
    service = TimesheetService(db_session, cache=cache)
    timesheet = service.get_or_create_week(org["alice"].id, WEEK_START)
    service.replace_entries(
        timesheet.id, org["alice"].id,
        [EntryInput(org["work"].id, WEEK_START.replace(day=3), 8)],
        at=BEFORE_CUTOFF,
    )
    db_session.commit()
    return timesheet.id


@pytest.fixture
def two_sessions(session_factory):
    first, second = session_factory(), session_factory()
    yield first, second
    for session in (first, second):
        session.rollback()
        session.close()


class TestLostRace:

    def test_second_approver_loses(self, org, submitted, two_sessions, cache):
        session_a, session_b = two_sessions
        service_a = TimesheetService(session_a, cache=cache)
        service_b = TimesheetService(session_b, cache=cache)

        # Both approvers read the timesheet while it is Submitted
        assert service_a.get_timesheet(submitted).status == TimesheetStatus.SUBMITTED
        assert service_b.get_timesheet(submitted).status == TimesheetStatus.SUBMITTED

        service_a.approve(submitted, org["manager"].id, at=AFTER_CUTOFF)
        session_a.commit()

        with pytest.raises(StateConflictError) as exc_info:
            service_b.approve(submitted, org["delegate"].id, at=AFTER_CUTOFF)
        assert exc_info.value.timesheet_id == submitted
        assert exc_info.value.current_status == TimesheetStatus.APPROVED
        session_b.rollback()

        actions = [
            e.action for e in
            session_a.query(AuditLogEntry).filter_by(timesheet_id=submitted).order_by(AuditLogEntry.sequence)
        ]
        assert actions == [AuditAction.SUBMITTED, AuditAction.APPROVED]

    def test_return_loses_to_withdraw(self, org, submitted, two_sessions, cache):
        session_a, session_b = two_sessions
        service_a = TimesheetService(session_a, cache=cache)
        service_b = TimesheetService(session_b, cache=cache)
        service_b.get_timesheet(submitted)

        service_a.withdraw(submitted, org["alice"].id, at=AFTER_CUTOFF)
        session_a.commit()

        with pytest.raises(StateConflictError) as exc_info:
            service_b.return_timesheet(submitted, org["manager"].id, "Late", at=AFTER_CUTOFF)
        assert exc_info.value.current_status == TimesheetStatus.DRAFT
        session_b.rollback()

        session_a.expire_all()
        timesheet = session_a.get(Timesheet, submitted)
        assert timesheet.status == TimesheetStatus.DRAFT
        assert timesheet.return_reason is None

    def test_retry_after_conflict_sees_new_state(self, org, submitted, two_sessions, cache):
        session_a, session_b = two_sessions
        service_b = TimesheetService(session_b, cache=cache)
        service_b.get_timesheet(submitted)

        TimesheetService(session_a, cache=cache).approve(submitted, org["manager"].id, at=AFTER_CUTOFF)
        session_a.commit()

        with pytest.raises(StateConflictError):
            service_b.approve(submitted, org["delegate"].id, at=AFTER_CUTOFF)
        session_b.rollback()

        # The retry re-reads and now fails the state guard instead of the swap
        with pytest.raises(StateConflictError) as exc_info:
            service_b.approve(submitted, org["delegate"].id, at=AFTER_CUTOFF)
        assert exc_info.value.current_status == TimesheetStatus.APPROVED


class TestSubmitAgainstEntryChanges:

    def test_submit_loses_to_emptied_entries(self, org, filled_draft, two_sessions, cache):
        session_a, session_b = two_sessions
        service_b = TimesheetService(session_b, cache=cache)

        # The submitter has already seen eight hours on the sheet
        assert service_b.get_timesheet(filled_draft).total_hours == 8

        TimesheetService(session_a, cache=cache).replace_entries(
            filled_draft, org["alice"].id, [], at=BEFORE_CUTOFF,
        )
        session_a.commit()

        with pytest.raises(StateConflictError) as exc_info:
            service_b.submit(filled_draft, org["alice"].id, at=AFTER_CUTOFF)
        assert exc_info.value.current_status == TimesheetStatus.DRAFT
        session_b.rollback()

        session_a.expire_all()
        assert session_a.get(Timesheet, filled_draft).status == TimesheetStatus.DRAFT
        assert session_a.query(AuditLogEntry).filter_by(timesheet_id=filled_draft).count() == 0
