from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sendworker.integrations import telegram
from sendworker.integrations.telegram import TelegramSendError
from sendworker.models.tables import Conversation, NotificationData
from sendworker.schemas.send_queue import ResolvedParams, SendJob
from sendworker.send.delay import DelaySendingNotificationService
from sendworker.send.outcomes import NOT_FOUND
from sendworker.send.results import ManageResultDataService
from sendworker.util.time import now_utc

log = logging.getLogger("params")


class NotificationNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class SendNotificationParams:
    # True when this service already requeued or recorded the job.
    force_close: bool
    total_number_of_throttles: int = 0
    params: ResolvedParams | None = None
    recipient_id: str | None = None


class GetSendNotificationParamsService:
    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        delay_service: DelaySendingNotificationService,
        result_service: ManageResultDataService,
        token: str | None,
        max_number_of_attempts: int,
        send_retry_delay_number_of_seconds: float,
        get_chat_fn: Callable[..., tuple[int, dict]] | None = None,
    ):
        self._session_factory = session_factory
        self._delay = delay_service
        self._results = result_service
        self._token = token
        self._max_attempts = max(1, max_number_of_attempts)
        self._delay_seconds = send_retry_delay_number_of_seconds
        self._get_chat = get_chat_fn or telegram.get_chat

    def get_send_notification_params(self, job: SendJob) -> SendNotificationParams:
        recipient_id = job.recipient_id

        if job.resolved_params is not None:
            return SendNotificationParams(force_close=False, params=job.resolved_params, recipient_id=recipient_id)

        content = self._load_content(job.notification_id)

        chat_id = job.recipient_data.chat_id or self._cached_chat_id(recipient_id)
        throttles = 0
        if not chat_id:
            username = job.recipient_data.username
            if not username:
                self._results.process_result_data(
                    notification_id=job.notification_id,
                    recipient_id=recipient_id,
                    total_number_of_throttles=0,
                    is_status_code_from_create_conversation=True,
                    status_code=NOT_FOUND,
                    error_message="Recipient has neither chat_id nor username",
                )
                return SendNotificationParams(force_close=True, recipient_id=recipient_id)

            chat_id, throttles, closed = self._create_conversation(job, username)
            if closed:
                return SendNotificationParams(force_close=True, total_number_of_throttles=throttles, recipient_id=recipient_id)

        params = ResolvedParams(
            chat_id=chat_id,
            text=content.get("text") or "",
            parse_mode=content.get("parse_mode"),
            disable_web_page_preview=bool(content.get("disable_web_page_preview", True)),
        )
        return SendNotificationParams(
            force_close=False,
            total_number_of_throttles=throttles,
            params=params,
            recipient_id=recipient_id,
        )

    def _load_content(self, notification_id: str) -> dict:
        with self._session_factory() as db:
            n = db.get(NotificationData, notification_id)
            if n is None:
                raise NotificationNotFoundError(f"Notification {notification_id} not found")
            return dict(n.content or {})

    def _cached_chat_id(self, recipient_id: str) -> str | None:
        with self._session_factory() as db:
            c = db.get(Conversation, recipient_id)
            return c.chat_id if c else None

    def _create_conversation(self, job: SendJob, username: str) -> tuple[str | None, int, bool]:
        """Returns (chat_id, throttles, force_close)."""

        if not self._token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN is not configured")

        handle = username if username.startswith("@") else f"@{username}"
        throttles = 0
        for attempt in range(1, self._max_attempts + 1):
            try:
                _, data = self._get_chat(token=self._token, chat_id=handle)
            except TelegramSendError as e:
                if e.is_throttled:
                    throttles += 1
                    log.warning("getChat throttled (attempt %s/%s) for %s", attempt, self._max_attempts, handle)
                    continue

                log.error("Conversation lookup failed for %s: %s", handle, e.description)
                self._results.process_result_data(
                    notification_id=job.notification_id,
                    recipient_id=job.recipient_id,
                    total_number_of_throttles=throttles,
                    is_status_code_from_create_conversation=True,
                    status_code=e.status_code,
                    error_message=e.description,
                )
                return None, throttles, True

            raw_id = (data.get("result") or {}).get("id")
            if raw_id is None:
                raise ValueError(f"getChat returned no chat id for {handle}")
            chat_id = str(raw_id)
            self._store_conversation(job.recipient_id, chat_id)
            return chat_id, throttles, False

        log.error("Conversation lookup throttled %s times for %s; delaying", throttles, handle)
        self._delay.delay_sending_notification(send_retry_delay_number_of_seconds=self._delay_seconds, job=job)
        return None, throttles, True

    def _store_conversation(self, recipient_id: str, chat_id: str) -> None:
        with self._session_factory() as db:
            db.add(Conversation(recipient_id=recipient_id, chat_id=chat_id, created_at=now_utc()))
            try:
                db.commit()
            except IntegrityError:
                # Cached concurrently by another worker.
                db.rollback()
