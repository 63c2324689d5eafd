"""End-to-end API flows through the FastAPI application.

Covers:
1. Weekly draft -> entries -> submit -> approve -> unlock
2. Return with reason and re-submission
3. Window, conflict and authorization failures mapped to status codes
4. Delegation lifecycle and the approver queue
"""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from timesheets.api.deps import get_db
from timesheets.api.main import app
from timesheets.core.security import create_access_token
from tests.factories import WEEK_START

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def client(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth(user, role=None):
    """Bearer header for a user, using their stored role unless overridden."""
    token = create_access_token(user.id, role or user.role)
    return {"Authorization": f"Bearer {token}"}


def next_sunday(weeks_ahead=2):
    today = date.today()
    return today + timedelta(days=(6 - today.weekday()) % 7 + 7 * weeks_ahead)


def open_week(client, user, week_start=WEEK_START):
    response = client.post(
        "/api/timesheets/week",
        json={"week_start_date": week_start.isoformat()},
        headers=auth(user),
    )
    assert response.status_code == 200
    return response.json()


def fill_week(client, user, timesheet_id, project, week_start=WEEK_START, hours="8"):
    entries = [
        {
            "project_id": str(project.id),
            "work_date": (week_start + timedelta(days=offset)).isoformat(),
            "hours_worked": hours,
        }
        for offset in range(1, 6)
    ]
    response = client.put(
        f"/api/timesheets/{timesheet_id}",
        json={"entries": entries},
        headers=auth(user),
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture()
def submitted_week(client, org):
    timesheet = open_week(client, org["alice"])
    fill_week(client, org["alice"], timesheet["id"], org["work"])
    response = client.post(f"/api/timesheets/{timesheet['id']}/submit", headers=auth(org["alice"]))
    assert response.status_code == 200
    return response.json()


# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------

class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token_rejected(self, client):
        assert client.get("/api/approvals").status_code == 401

    def test_garbage_token_rejected(self, client):
        response = client.get("/api/approvals", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# Timesheet lifecycle
# ---------------------------------------------------------------------------

class TestTimesheetLifecycle:

    def test_week_is_created_once(self, client, org):
        first = open_week(client, org["alice"])
        second = open_week(client, org["alice"])

        assert first["id"] == second["id"]
        assert first["status"] == "Draft"
        assert first["period_end"] == (WEEK_START + timedelta(days=6)).isoformat()
        assert "submit" in first["available_actions"]

    def test_week_must_start_on_sunday(self, client, org):
        response = client.post(
            "/api/timesheets/week",
            json={"week_start_date": (WEEK_START + timedelta(days=1)).isoformat()},
            headers=auth(org["alice"]),
        )
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_entries_replace_and_total(self, client, org):
        timesheet = open_week(client, org["alice"])
        body = fill_week(client, org["alice"], timesheet["id"], org["work"])

        assert len(body["entries"]) == 5
        assert float(body["total_hours"]) == 40.0

    def test_submit_approve_unlock(self, client, org, submitted_week):
        timesheet_id = submitted_week["id"]
        assert submitted_week["status"] == "Submitted"
        assert submitted_week["submitted_date"] is not None

        approved = client.post(
            f"/api/timesheets/{timesheet_id}/approve",
            json={"notes": "Looks right"},
            headers=auth(org["manager"]),
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "Approved"
        assert approved.json()["is_locked"] is True
        assert approved.json()["approved_by_user_id"] == str(org["manager"].id)

        unlocked = client.post(
            f"/api/timesheets/{timesheet_id}/unlock",
            json={"reason": "Payroll correction"},
            headers=auth(org["admin"]),
        )
        assert unlocked.status_code == 200
        assert unlocked.json()["status"] == "Draft"
        assert unlocked.json()["is_locked"] is False

        history = client.get(f"/api/timesheets/{timesheet_id}/history", headers=auth(org["alice"]))
        assert history.status_code == 200
        assert [h["action"] for h in history.json()] == ["Submitted", "Approved", "Unlocked"]
        assert history.json()[1]["approval_type"] == "Primary"
        assert history.json()[2]["notes"] == "Payroll correction"

    def test_return_then_edit_and_resubmit(self, client, org, submitted_week):
        timesheet_id = submitted_week["id"]

        returned = client.post(
            f"/api/timesheets/{timesheet_id}/return",
            json={"reason": "Friday is missing a project"},
            headers=auth(org["manager"]),
        )
        assert returned.status_code == 200
        assert returned.json()["status"] == "Returned"
        assert returned.json()["return_reason"] == "Friday is missing a project"

        edited = fill_week(client, org["alice"], timesheet_id, org["work"], hours="7.5")
        assert edited["status"] == "Draft"

        resubmitted = client.post(f"/api/timesheets/{timesheet_id}/submit", headers=auth(org["alice"]))
        assert resubmitted.status_code == 200
        assert resubmitted.json()["return_reason"] is None

    def test_return_requires_reason(self, client, org, submitted_week):
        response = client.post(
            f"/api/timesheets/{submitted_week['id']}/return",
            json={"reason": "   "},
            headers=auth(org["manager"]),
        )
        assert response.status_code == 422

    def test_delete_unsubmitted_draft(self, client, org):
        timesheet = open_week(client, org["bob"])

        response = client.delete(f"/api/timesheets/{timesheet['id']}", headers=auth(org["bob"]))
        assert response.status_code == 204

        missing = client.get(f"/api/timesheets/{timesheet['id']}", headers=auth(org["bob"]))
        assert missing.status_code == 404


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

class TestErrorMapping:

    def test_submit_before_cutoff_reports_cutoff(self, client, org):
        week_start = next_sunday()
        timesheet = open_week(client, org["alice"], week_start)
        fill_week(client, org["alice"], timesheet["id"], org["work"], week_start=week_start)

        response = client.post(f"/api/timesheets/{timesheet['id']}/submit", headers=auth(org["alice"]))

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "window_error"
        assert body["cutoff"].startswith((week_start + timedelta(days=5)).isoformat())

    def test_invalid_transition_is_conflict(self, client, org):
        timesheet = open_week(client, org["alice"])

        response = client.post(f"/api/timesheets/{timesheet['id']}/withdraw", headers=auth(org["alice"]))

        assert response.status_code == 409
        assert response.json()["error"] == "state_conflict"
        assert response.json()["current_status"] == "Draft"

    def test_non_approver_forbidden(self, client, org, submitted_week):
        response = client.post(
            f"/api/timesheets/{submitted_week['id']}/approve",
            headers=auth(org["delegate"]),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    def test_employee_cannot_unlock(self, client, org, submitted_week):
        client.post(f"/api/timesheets/{submitted_week['id']}/approve", headers=auth(org["manager"]))

        response = client.post(
            f"/api/timesheets/{submitted_week['id']}/unlock",
            json={"reason": "Mine"},
            headers=auth(org["alice"]),
        )
        assert response.status_code == 403

    def test_stranger_cannot_read(self, client, org, submitted_week):
        response = client.get(f"/api/timesheets/{submitted_week['id']}", headers=auth(org["delegate"]))
        assert response.status_code == 403

    def test_anomalies_restricted_to_admins(self, client, org, submitted_week):
        timesheet_id = submitted_week["id"]

        assert client.get(
            f"/api/timesheets/{timesheet_id}/anomalies", headers=auth(org["alice"])
        ).status_code == 403

        response = client.get(f"/api/timesheets/{timesheet_id}/anomalies", headers=auth(org["admin"]))
        assert response.status_code == 200
        assert response.json() == []


# ---------------------------------------------------------------------------
# Delegations and approver queues
# ---------------------------------------------------------------------------

class TestDelegationsAndQueue:

    def _delegate(self, client, org, **overrides):
        today = date.today()
        payload = {
            "delegate_user_id": str(org["delegate"].id),
            "start_date": (today - timedelta(days=1)).isoformat(),
            "end_date": (today + timedelta(days=7)).isoformat(),
            "reason": "Annual leave",
        }
        payload.update(overrides)
        return client.post("/api/delegations", json=payload, headers=auth(org["manager"]))

    def test_manager_queue(self, client, org, submitted_week):
        response = client.get("/api/approvals", headers=auth(org["manager"]))

        assert response.status_code == 200
        queue = response.json()
        assert [q["timesheet_id"] for q in queue] == [submitted_week["id"]]
        assert queue[0]["employee_name"] == "Alice"
        assert queue[0]["rag_status"] == "green"

    def test_queue_rejects_other_statuses(self, client, org):
        response = client.get("/api/approvals", params={"status": "Approved"}, headers=auth(org["manager"]))
        assert response.status_code == 422

    def test_delegation_lifecycle(self, client, org, submitted_week):
        created = self._delegate(client, org)
        assert created.status_code == 201
        delegation_id = created.json()["id"]

        listing = client.get("/api/delegations", headers=auth(org["manager"])).json()
        assert [d["id"] for d in listing["given"]] == [delegation_id]
        assert listing["received"] == []

        active = client.get("/api/delegations/active", headers=auth(org["delegate"]))
        assert [d["id"] for d in active.json()] == [delegation_id]

        fetched = client.get(f"/api/delegations/{delegation_id}", headers=auth(org["delegate"]))
        assert fetched.status_code == 200
        assert fetched.json()["reason"] == "Annual leave"

        queue = client.get("/api/approvals", headers=auth(org["delegate"])).json()
        assert [q["timesheet_id"] for q in queue] == [submitted_week["id"]]

        revoked = client.delete(f"/api/delegations/{delegation_id}", headers=auth(org["manager"]))
        assert revoked.status_code == 200
        assert revoked.json()["is_active"] is False

        assert client.get("/api/approvals", headers=auth(org["delegate"])).json() == []
        denied = client.post(
            f"/api/timesheets/{submitted_week['id']}/approve",
            headers=auth(org["delegate"]),
        )
        assert denied.status_code == 403

    def test_delegate_approval_recorded(self, client, org, submitted_week):
        self._delegate(client, org)

        response = client.post(
            f"/api/timesheets/{submitted_week['id']}/approve",
            headers=auth(org["delegate"]),
        )
        assert response.status_code == 200

        history = client.get(
            f"/api/timesheets/{submitted_week['id']}/history", headers=auth(org["alice"])
        ).json()
        assert history[-1]["approval_type"] == "Delegate"
        assert history[-1]["on_behalf_of_user_id"] == str(org["manager"].id)

    def test_self_delegation_rejected(self, client, org):
        response = self._delegate(client, org, delegate_user_id=str(org["manager"].id))
        assert response.status_code == 422

    def test_only_delegator_revokes(self, client, org):
        delegation_id = self._delegate(client, org).json()["id"]

        response = client.delete(f"/api/delegations/{delegation_id}", headers=auth(org["delegate"]))
        assert response.status_code == 403
