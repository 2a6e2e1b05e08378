from __future__ import annotations

import logging
from typing import Callable

from sendworker.integrations import telegram
from sendworker.integrations.telegram import TelegramSendError
from sendworker.schemas.send_queue import ResolvedParams
from sendworker.send.outcomes import SendNotificationResponse

log = logging.getLogger("sender")


class SendNotificationService:
    def __init__(self, *, token: str | None, send_fn: Callable[..., tuple[int, dict]] | None = None):
        self._token = token
        self._send = send_fn or telegram.send_message

    def send(self, *, params: ResolvedParams, max_number_of_attempts: int) -> SendNotificationResponse:
        """Try up to max_number_of_attempts times; only rate-limit responses are retried."""

        if not self._token:
            raise RuntimeError("TELEGRAM_BOT_TOKEN is not configured")

        throttles = 0
        for attempt in range(1, max(1, max_number_of_attempts) + 1):
            try:
                status_code, _ = self._send(
                    token=self._token,
                    chat_id=params.chat_id,
                    text=params.text,
                    parse_mode=params.parse_mode,
                    disable_preview=params.disable_web_page_preview,
                )
                return SendNotificationResponse.succeeded(status_code, throttles=throttles)
            except TelegramSendError as e:
                if e.is_throttled:
                    throttles += 1
                    log.warning("Send throttled (attempt %s/%s) chat=%s", attempt, max_number_of_attempts, params.chat_id)
                    continue
                return SendNotificationResponse.failed(e.status_code, e.description, throttles=throttles)

        return SendNotificationResponse.throttled(throttles=throttles)
