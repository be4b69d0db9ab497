"""row version counters on requests and inventory records

Revision ID: 0002_row_versions
Revises: 0001_initial
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_row_versions"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("requests") as batch_op:
        batch_op.add_column(sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")))
    with op.batch_alter_table("inventory_records") as batch_op:
        batch_op.add_column(sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")))


def downgrade() -> None:
    with op.batch_alter_table("inventory_records") as batch_op:
        batch_op.drop_column("version_id")
    with op.batch_alter_table("requests") as batch_op:
        batch_op.drop_column("version_id")
