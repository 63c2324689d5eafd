"""Make timesheet history immutable

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Adds database-level immutability for timesheet_history:
- Trigger that rejects any UPDATE
- Trigger that rejects any DELETE

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_timesheet_history_update()
        RETURNS TRIGGER AS $trigger$
        BEGIN
            RAISE EXCEPTION 'Timesheet history is immutable and cannot be updated. Record ID: %', OLD.id;
        END;
        $trigger$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_timesheet_history_delete()
        RETURNS TRIGGER AS $trigger$
        BEGIN
            RAISE EXCEPTION 'Timesheet history is immutable and cannot be deleted. Record ID: %', OLD.id;
        END;
        $trigger$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER timesheet_history_prevent_update
        BEFORE UPDATE ON timesheet_history
        FOR EACH ROW
        EXECUTE FUNCTION prevent_timesheet_history_update();
    """)

    op.execute("""
        CREATE TRIGGER timesheet_history_prevent_delete
        BEFORE DELETE ON timesheet_history
        FOR EACH ROW
        EXECUTE FUNCTION prevent_timesheet_history_delete();
    """)


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return

    op.execute("DROP TRIGGER IF EXISTS timesheet_history_prevent_update ON timesheet_history;")
    op.execute("DROP TRIGGER IF EXISTS timesheet_history_prevent_delete ON timesheet_history;")

    op.execute("DROP FUNCTION IF EXISTS prevent_timesheet_history_update();")
    op.execute("DROP FUNCTION IF EXISTS prevent_timesheet_history_delete();")
