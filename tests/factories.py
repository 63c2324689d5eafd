"""Factory functions for creating test database records.

Each factory creates a model instance, adds it to the session, and flushes
so that database-generated fields (id, created_at, etc.) are populated.
All fields have sensible defaults but can be overridden via keyword arguments.

Usage::

    from tests.factories import create_user, create_timesheet

    def test_something(db_session):
        manager = create_user(db_session, role=UserRole.MANAGER)
        employee = create_user(db_session, manager=manager)
        ts = create_timesheet(db_session, user=employee)
        assert ts.status == TimesheetStatus.DRAFT
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from timesheets.core.approval.states import TimesheetStatus
from timesheets.core.rbac import UserRole
from timesheets.db.models import (
    Delegation,
    Department,
    Project,
    ProjectType,
    ProjectVisibility,
    TimeEntry,
    Timesheet,
    User,
)


# Week of Sunday 2024-06-02; the work-hours cutoff is Friday 2024-06-07 12:00
WEEK_START = date(2024, 6, 2)
AFTER_CUTOFF = datetime(2024, 6, 7, 13, 0)
BEFORE_CUTOFF = datetime(2024, 6, 5, 9, 0)

_counter = 0


def _next_id() -> int:
    """Return a monotonically increasing integer for unique default values."""
    global _counter
    _counter += 1
    return _counter


# ---------------------------------------------------------------------------
# Department
# ---------------------------------------------------------------------------


def create_department(
    session: Session,
    *,
    code: Optional[str] = None,
    name: Optional[str] = None,
) -> Department:
    n = _next_id()
    department = Department(code=code or f"D{n}", name=name or f"Department {n}")
    session.add(department)
    session.flush()
    return department


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


def create_user(
    session: Session,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
    role: UserRole = UserRole.EMPLOYEE,
    manager: Optional[User] = None,
    department: Optional[Department] = None,
    is_active: bool = True,
) -> User:
    n = _next_id()
    user = User(
        email=email or f"user{n}@example.com",
        name=name or f"User {n}",
        role=role,
        manager_id=manager.id if manager else None,
        department_id=department.id if department else None,
        is_active=is_active,
    )
    session.add(user)
    session.flush()
    return user


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


def create_project(
    session: Session,
    *,
    project_number: Optional[str] = None,
    name: Optional[str] = None,
    project_type: ProjectType = ProjectType.WORK,
    visibility: ProjectVisibility = ProjectVisibility.ALL_DEPARTMENTS,
    departments: Iterable[Department] = (),
    employees: Iterable[User] = (),
    is_active: bool = True,
) -> Project:
    n = _next_id()
    project = Project(
        project_number=project_number or f"P-{n}",
        name=name or f"Project {n}",
        project_type=project_type,
        visibility=visibility,
        departments=list(departments),
        employees=list(employees),
        is_active=is_active,
    )
    session.add(project)
    session.flush()
    return project


# ---------------------------------------------------------------------------
# Timesheet
# ---------------------------------------------------------------------------


def create_timesheet(
    session: Session,
    *,
    user: User,
    period_start: date = date(2024, 6, 2),
    status: TimesheetStatus = TimesheetStatus.DRAFT,
    submitted_date: Optional[datetime] = None,
    entries: Iterable[Tuple[Project, date, object]] = (),
) -> Timesheet:
    """Insert a timesheet directly in any state, bypassing the workflow."""
    timesheet = Timesheet(
        user_id=user.id,
        period_start=period_start,
        period_end=period_start + timedelta(days=6),
        status=status,
        is_locked=status == TimesheetStatus.APPROVED,
        submitted_date=submitted_date,
    )
    for project, work_date, hours in entries:
        timesheet.entries.append(TimeEntry(
            project_id=project.id,
            work_date=work_date,
            hours_worked=Decimal(str(hours)),
        ))
    session.add(timesheet)
    session.flush()
    return timesheet


# ---------------------------------------------------------------------------
# Delegation
# ---------------------------------------------------------------------------


def create_delegation(
    session: Session,
    *,
    delegator: User,
    delegate: User,
    start_date: date = date(2024, 6, 1),
    end_date: date = date(2024, 6, 14),
    is_active: bool = True,
    employees: Iterable[User] = (),
    reason: Optional[str] = None,
) -> Delegation:
    """Insert a delegation row directly, without service validation."""
    delegation = Delegation(
        delegator_id=delegator.id,
        delegate_id=delegate.id,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
        scoped_employees=list(employees),
        reason=reason,
        created_by=delegator.id,
    )
    session.add(delegation)
    session.flush()
    return delegation
