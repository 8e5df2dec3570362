"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op

from kct_orders import models  # noqa: F401
from kct_orders.database import Base

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Baseline: every table as declared by the models at this revision.
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
