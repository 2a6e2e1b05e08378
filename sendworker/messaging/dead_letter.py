"""Dead-letter destination for messages that exhausted their deliveries.

Brokers without a dead-letter exchange (Redis) drop rejected messages, so the
payload and the last fault are stored here before the message is rejected.
"""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.orm import Session

from sendworker.models.tables import DeadLetterMessage
from sendworker.schemas.send_queue import DeliveryMetadata
from sendworker.util.time import now_utc

log = logging.getLogger("dead_letter")


class DeadLetterStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def route(self, payload: dict | str, metadata: DeliveryMetadata, error: BaseException | None) -> None:
        body = payload if isinstance(payload, dict) else {"raw": payload}
        recipient = body.get("recipient_data") if isinstance(body.get("recipient_data"), dict) else {}

        with self._session_factory() as db:
            row = db.get(DeadLetterMessage, metadata.message_id)
            if row is None:
                row = DeadLetterMessage(message_id=metadata.message_id)
                db.add(row)
            row.payload = body
            row.notification_id = body.get("notification_id")
            row.recipient_id = recipient.get("recipient_id")
            row.delivery_count = metadata.delivery_count
            row.error_type = type(error).__name__ if error else None
            row.error_message = str(error) if error else None
            row.dead_lettered_at = now_utc()
            db.commit()

        log.error(
            "Dead-lettered message %s notification=%s after %s deliveries",
            metadata.message_id,
            body.get("notification_id"),
            metadata.delivery_count,
        )
