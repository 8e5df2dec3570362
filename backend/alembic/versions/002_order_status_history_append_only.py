"""order_status_history is append-only

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION reject_status_history_change() RETURNS trigger AS $$
        BEGIN
          RAISE EXCEPTION 'order_status_history is append-only';
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute("DROP TRIGGER IF EXISTS trg_status_history_append_only ON order_status_history")
    op.execute(
        """
        CREATE TRIGGER trg_status_history_append_only
        BEFORE UPDATE OR DELETE ON order_status_history
        FOR EACH ROW EXECUTE FUNCTION reject_status_history_change()
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_status_history_append_only ON order_status_history")
    op.execute("DROP FUNCTION IF EXISTS reject_status_history_change()")
