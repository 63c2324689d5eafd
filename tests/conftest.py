"""Pytest configuration and shared fixtures."""

import os

# Must be set before timesheets.core.config is first imported
os.environ.setdefault("TIMESHEETS_DATABASE_URL", "sqlite://")
os.environ.setdefault("TIMESHEETS_NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("TIMESHEETS_CELERY_TASK_ALWAYS_EAGER", "true")

import pytest
from sqlalchemy.orm import sessionmaker

from timesheets.core.delegation.resolver import DelegationCache
from timesheets.core.rbac import UserRole
from timesheets.db.base import Base
from timesheets.db.session import make_engine
import timesheets.db.models  # noqa: F401

from tests import factories


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so that separate sessions see each other's commits."""
    engine = make_engine(f"sqlite:///{tmp_path / 'timesheets.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def cache():
    """A cache that never holds entries, so every read is fresh."""
    return DelegationCache(ttl_seconds=0)


# ---------------------------------------------------------------------------
# Factory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_factory(db_session):
    def _create(**kwargs):
        return factories.create_user(db_session, **kwargs)
    return _create


@pytest.fixture
def project_factory(db_session):
    def _create(**kwargs):
        return factories.create_project(db_session, **kwargs)
    return _create


@pytest.fixture
def timesheet_factory(db_session):
    def _create(**kwargs):
        return factories.create_timesheet(db_session, **kwargs)
    return _create


@pytest.fixture
def delegation_factory(db_session):
    def _create(**kwargs):
        return factories.create_delegation(db_session, **kwargs)
    return _create


# ---------------------------------------------------------------------------
# A small org: manager M with reports A and B, a peer D, and an admin
# ---------------------------------------------------------------------------


@pytest.fixture
def org(db_session):
    manager = factories.create_user(db_session, name="Morgan Manager", role=UserRole.MANAGER)
    delegate = factories.create_user(db_session, name="Dana Delegate", role=UserRole.MANAGER)
    admin = factories.create_user(db_session, name="Ari Admin", role=UserRole.TIMESHEET_ADMIN)
    alice = factories.create_user(db_session, name="Alice", manager=manager)
    bob = factories.create_user(db_session, name="Bob", manager=manager)
    work = factories.create_project(db_session, project_number="P-100")
    pto = factories.create_project(db_session, project_number="PTO", project_type=factories.ProjectType.PTO)
    db_session.commit()
    return {
        "manager": manager,
        "delegate": delegate,
        "admin": admin,
        "alice": alice,
        "bob": bob,
        "work": work,
        "pto": pto,
    }
