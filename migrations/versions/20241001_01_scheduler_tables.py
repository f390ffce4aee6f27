"""create reminders, scheduled_payments and digest_users

Revision ID: 20241001_01
Revises: None
Create Date: 2024-10-01
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20241001_01"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "reminders",
        sa.Column("reminder_id", sa.String(length=36), primary_key=True),
        sa.Column("chat_id", sa.String(), nullable=False),
        sa.Column("original_text", sa.String(), nullable=True),
        sa.Column("reminder_text", sa.String(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("recurrence", sa.String(length=16), nullable=False, server_default="NONE"),
        sa.Column("recurrence_day", sa.Integer(), nullable=True),
        sa.Column("recurrence_time", sa.String(length=5), nullable=True),
        sa.Column("calendar_event_id", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_reminders_chat_id", "reminders", ["chat_id"])
    op.create_index("ix_reminders_scheduled_at", "reminders", ["scheduled_at"])

    op.create_table(
        "scheduled_payments",
        sa.Column("payment_id", sa.String(length=36), primary_key=True),
        sa.Column("chat_id", sa.String(), nullable=False),
        sa.Column("recipient", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("recurrence", sa.String(length=16), nullable=False, server_default="NONE"),
        sa.Column("recurrence_day", sa.Integer(), nullable=True),
        sa.Column("recurrence_time", sa.String(length=5), nullable=True),
        sa.Column("next_payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_payments", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_scheduled_payments_chat_id", "scheduled_payments", ["chat_id"])
    op.create_index("ix_scheduled_payments_next_payment_at", "scheduled_payments", ["next_payment_at"])

    op.create_table(
        "digest_users",
        sa.Column("chat_id", sa.String(), primary_key=True),
        sa.Column("digest_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("digest_hour", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("digest_users")
    op.drop_index("ix_scheduled_payments_next_payment_at", table_name="scheduled_payments")
    op.drop_index("ix_scheduled_payments_chat_id", table_name="scheduled_payments")
    op.drop_table("scheduled_payments")
    op.drop_index("ix_reminders_scheduled_at", table_name="reminders")
    op.drop_index("ix_reminders_chat_id", table_name="reminders")
    op.drop_table("reminders")
