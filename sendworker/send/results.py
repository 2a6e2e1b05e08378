from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sendworker.models.tables import SentNotification
from sendworker.send.outcomes import delivery_status_for
from sendworker.util.time import now_utc

log = logging.getLogger("results")


class ManageResultDataService:
    """Stores the latest delivery outcome per (notification, recipient).

    Redeliveries of the same job call this more than once. Status fields and
    the throttle total are overwritten by the latest call; only the status code
    history and the attempt counter grow.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def process_result_data(
        self,
        *,
        notification_id: str,
        recipient_id: str,
        total_number_of_throttles: int,
        is_status_code_from_create_conversation: bool,
        status_code: int,
        error_message: str | None = None,
    ) -> None:
        delivery_status = delivery_status_for(status_code)

        def _apply(db: Session) -> None:
            now = now_utc()
            row = db.get(SentNotification, (notification_id, recipient_id))
            if row is None:
                row = SentNotification(
                    notification_id=notification_id,
                    recipient_id=recipient_id,
                    all_status_codes="",
                    attempts_count=0,
                )
                db.add(row)

            row.delivery_status = delivery_status
            row.status_code = status_code
            row.all_status_codes = f"{row.all_status_codes or ''}{status_code},"
            row.error_message = error_message
            row.total_throttles = total_number_of_throttles
            row.attempts_count = (row.attempts_count or 0) + 1
            row.is_status_code_from_create_conversation = is_status_code_from_create_conversation
            row.sent_at = now
            row.updated_at = now
            db.commit()

        with self._session_factory() as db:
            try:
                _apply(db)
            except IntegrityError:
                db.rollback()
                # Another worker inserted the row concurrently; update it instead.
                _apply(db)

        log.info(
            "Result stored notification=%s recipient=%s status=%s code=%s",
            notification_id,
            recipient_id,
            delivery_status,
            status_code,
        )
