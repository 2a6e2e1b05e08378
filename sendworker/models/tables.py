from __future__ import annotations

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

# Use JSONB on Postgres, fallback to JSON for SQLite/test environments.
JSONType = JSON().with_variant(JSONB, "postgresql")

from sendworker.models.base import Base


class NotificationData(Base):
    __tablename__ = "notifications"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # {"text": ..., "parse_mode": ..., "disable_web_page_preview": ...}
    content: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)


class Conversation(Base):
    __tablename__ = "conversations"
    recipient_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    chat_id: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)


class SentNotification(Base):
    __tablename__ = "sent_notifications"
    notification_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    recipient_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    delivery_status: Mapped[str] = mapped_column(String(30), nullable=False)  # Succeeded/Failed/Retrying/...
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    all_status_codes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_throttles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_status_code_from_create_conversation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sent_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)


class GlobalSendingState(Base):
    __tablename__ = "global_sending_state"
    id: Mapped[str] = mapped_column(String(20), primary_key=True)  # always "global"
    send_retry_delay_time: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)


class DeadLetterMessage(Base):
    __tablename__ = "dead_letter_messages"
    message_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    notification_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    recipient_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    delivery_count: Mapped[int] = mapped_column(Integer, nullable=False)
    error_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    dead_lettered_at: Mapped["DateTime"] = mapped_column(DateTime(timezone=True), nullable=False)
