"""Initial schema: departments, users, projects, timesheets, entries, delegations, history

Revision ID: 0001
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all core tables."""

    # --- departments (no FK deps) ---
    op.create_table(
        "departments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id", name="pk_departments"),
        sa.UniqueConstraint("code", name="uq_departments_code"),
    )

    # --- users (FK -> departments, self) ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255)),
        sa.Column("role", sa.String(14), nullable=False, server_default="Employee"),
        sa.Column("manager_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("department_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.ForeignKeyConstraint(
            ["manager_id"],
            ["users.id"],
            name="fk_users_manager_id_users",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["department_id"],
            ["departments.id"],
            name="fk_users_department_id_departments",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_manager_id", "users", ["manager_id"])
    op.create_index("ix_users_department_id", "users", ["department_id"])

    # --- projects and visibility lists ---
    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("project_number", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("project_type", sa.String(7), nullable=False, server_default="Work"),
        sa.Column("visibility", sa.String(19), nullable=False, server_default="AllDepartments"),
        sa.Column("grant_identifier", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_projects"),
        sa.UniqueConstraint("project_number", name="uq_projects_project_number"),
    )

    op.create_table(
        "project_departments",
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("department_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint("project_id", "department_id", name="pk_project_departments"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "project_employees",
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint("project_id", "user_id", name="pk_project_employees"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    # --- timesheets (FK -> users) ---
    op.create_table(
        "timesheets",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("status", sa.String(9), nullable=False, server_default="Draft"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("submitted_date", sa.DateTime(), nullable=True),
        sa.Column("approved_date", sa.DateTime(), nullable=True),
        sa.Column("approved_by_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("return_reason", sa.Text(), nullable=True),
        sa.Column("import_batch_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_timesheets"),
        sa.UniqueConstraint("user_id", "period_start", name="uq_timesheets_user_period"),
        sa.CheckConstraint(
            "(is_locked = true AND status = 'Approved') OR (is_locked = false AND status <> 'Approved')",
            name="ck_timesheets_lock_matches_status",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_timesheets_user_id_users"),
        sa.ForeignKeyConstraint(
            ["approved_by_user_id"],
            ["users.id"],
            name="fk_timesheets_approved_by_user_id_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_timesheets_user_id", "timesheets", ["user_id"])
    op.create_index("ix_timesheets_period_start", "timesheets", ["period_start"])
    op.create_index("ix_timesheets_status", "timesheets", ["status"])
    op.create_index("ix_timesheets_submitted_date", "timesheets", ["submitted_date"])
    op.create_index("ix_timesheets_import_batch_id", "timesheets", ["import_batch_id"])

    # --- time_entries (FK -> timesheets, projects) ---
    op.create_table(
        "time_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timesheet_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("hours_worked", sa.Numeric(5, 2), nullable=False),
        sa.Column("work_location", sa.String(6), nullable=False, server_default="Office"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_time_entries"),
        sa.UniqueConstraint("timesheet_id", "project_id", "work_date", name="uq_time_entries_project_day"),
        sa.CheckConstraint("hours_worked > 0 AND hours_worked <= 24", name="ck_time_entries_hours"),
        sa.ForeignKeyConstraint(
            ["timesheet_id"],
            ["timesheets.id"],
            name="fk_time_entries_timesheet_id_timesheets",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], name="fk_time_entries_project_id_projects"),
    )
    op.create_index("ix_time_entries_timesheet_id", "time_entries", ["timesheet_id"])
    op.create_index("ix_time_entries_project_id", "time_entries", ["project_id"])

    # --- delegations (FK -> users) ---
    op.create_table(
        "delegations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("delegator_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("delegate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_delegations"),
        sa.CheckConstraint("start_date <= end_date", name="ck_delegations_date_range"),
        sa.CheckConstraint("delegator_id <> delegate_id", name="ck_delegations_not_self"),
        sa.ForeignKeyConstraint(["delegator_id"], ["users.id"], name="fk_delegations_delegator_id_users"),
        sa.ForeignKeyConstraint(["delegate_id"], ["users.id"], name="fk_delegations_delegate_id_users"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["revoked_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_delegations_delegator_id", "delegations", ["delegator_id"])
    op.create_index("ix_delegations_delegate_id", "delegations", ["delegate_id"])
    op.create_index("ix_delegations_is_active", "delegations", ["is_active"])

    op.create_table(
        "delegation_employees",
        sa.Column("delegation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("employee_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint("delegation_id", "employee_id", name="pk_delegation_employees"),
        sa.ForeignKeyConstraint(["delegation_id"], ["delegations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "delegation_audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("delegation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("action_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("delegator_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("delegate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("action_date", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_delegation_audit_log"),
        sa.ForeignKeyConstraint(["delegation_id"], ["delegations.id"]),
        sa.ForeignKeyConstraint(["action_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_delegation_audit_log_delegation_id", "delegation_audit_log", ["delegation_id"])
    op.create_index("ix_delegation_audit_log_action_date", "delegation_audit_log", ["action_date"])

    # --- timesheet_history (FK -> timesheets, users) ---
    op.create_table(
        "timesheet_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timesheet_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(9), nullable=False),
        sa.Column("action_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action_date", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("previous_status", sa.String(9), nullable=True),
        sa.Column("new_status", sa.String(9), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("approval_type", sa.String(8), nullable=True),
        sa.Column("on_behalf_of_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_timesheet_history"),
        sa.UniqueConstraint("timesheet_id", "sequence", name="uq_timesheet_history_sequence"),
        sa.ForeignKeyConstraint(
            ["timesheet_id"],
            ["timesheets.id"],
            name="fk_timesheet_history_timesheet_id_timesheets",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(["action_by"], ["users.id"], name="fk_timesheet_history_action_by_users"),
        sa.ForeignKeyConstraint(["on_behalf_of_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_timesheet_history_timesheet_id", "timesheet_history", ["timesheet_id"])
    op.create_index("ix_timesheet_history_action", "timesheet_history", ["action"])
    op.create_index("ix_timesheet_history_action_by", "timesheet_history", ["action_by"])
    op.create_index("ix_timesheet_history_action_date", "timesheet_history", ["action_date"])


def downgrade() -> None:
    """Drop all core tables in reverse dependency order."""
    op.drop_table("timesheet_history")
    op.drop_table("delegation_audit_log")
    op.drop_table("delegation_employees")
    op.drop_table("delegations")
    op.drop_table("time_entries")
    op.drop_table("timesheets")
    op.drop_table("project_employees")
    op.drop_table("project_departments")
    op.drop_table("projects")
    op.drop_table("users")
    op.drop_table("departments")
