"""init send worker tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-16
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("content", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "conversations",
        sa.Column("recipient_id", sa.String(length=128), primary_key=True),
        sa.Column("chat_id", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "sent_notifications",
        sa.Column("notification_id", sa.String(length=64), primary_key=True),
        sa.Column("recipient_id", sa.String(length=128), primary_key=True),
        sa.Column("delivery_status", sa.String(length=30), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("all_status_codes", sa.Text(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("total_throttles", sa.Integer(), nullable=False),
        sa.Column("attempts_count", sa.Integer(), nullable=False),
        sa.Column("is_status_code_from_create_conversation", sa.Boolean(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sent_notifications_delivery_status", "sent_notifications", ["notification_id", "delivery_status"])

    op.create_table(
        "global_sending_state",
        sa.Column("id", sa.String(length=20), primary_key=True),
        sa.Column("send_retry_delay_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "dead_letter_messages",
        sa.Column("message_id", sa.String(length=64), primary_key=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("notification_id", sa.String(length=64), nullable=True),
        sa.Column("recipient_id", sa.String(length=128), nullable=True),
        sa.Column("delivery_count", sa.Integer(), nullable=False),
        sa.Column("error_type", sa.String(length=200), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("dead_lettered_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("dead_letter_messages")
    op.drop_table("global_sending_state")
    op.drop_index("ix_sent_notifications_delivery_status", table_name="sent_notifications")
    op.drop_table("sent_notifications")
    op.drop_table("conversations")
    op.drop_table("notifications")
