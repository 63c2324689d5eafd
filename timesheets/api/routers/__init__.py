"""API routers."""

from timesheets.api.routers import timesheets, approvals, delegations

__all__ = ["timesheets", "approvals", "delegations"]
