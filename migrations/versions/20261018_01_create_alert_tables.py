"""create alert_logs and system_logs

Revision ID: 20261018_01
Revises: None
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "alert_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("threshold_key", sa.Integer(), nullable=False),
        sa.Column("alert_date", sa.String(length=10), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "phone_number", "alert_date", "threshold_key", name="uq_alert_logs_once_per_day"
        ),
    )
    op.create_index("ix_alert_logs_date", "alert_logs", ["alert_date"])

    op.create_table(
        "system_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("level", sa.String(length=16), nullable=False, server_default="info"),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_system_logs_timestamp", "system_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_index("ix_system_logs_timestamp", table_name="system_logs")
    op.drop_table("system_logs")
    op.drop_index("ix_alert_logs_date", table_name="alert_logs")
    op.drop_table("alert_logs")
