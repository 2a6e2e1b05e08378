from __future__ import annotations

import httpx

from sendworker.core.config import settings


class TelegramSendError(Exception):
    def __init__(self, status_code: int, description: str, *, retry_after: int | None = None):
        super().__init__(f"status={status_code} description={description}")
        self.status_code = status_code
        self.description = description
        self.retry_after = retry_after

    @property
    def is_throttled(self) -> bool:
        return self.status_code == 429


def _call(*, token: str, method: str, payload: dict) -> tuple[int, dict]:
    url = f"{settings.TELEGRAM_API_BASE.rstrip('/')}/bot{token}/{method}"

    with httpx.Client(timeout=settings.TELEGRAM_TIMEOUT_SECONDS) as client:
        r = client.post(url, json=payload)

    try:
        data = r.json()
    except ValueError:
        raise TelegramSendError(r.status_code, f"Non-JSON response: {r.text[:200]}")

    if not isinstance(data, dict):
        raise TelegramSendError(r.status_code, f"Unexpected response body: {r.text[:200]}")

    if r.status_code != 200 or not data.get("ok"):
        params = data.get("parameters") or {}
        raise TelegramSendError(
            int(data.get("error_code") or r.status_code),
            str(data.get("description") or "unknown error"),
            retry_after=params.get("retry_after"),
        )

    return r.status_code, data


def send_message(
    *, token: str, chat_id: str, text: str, parse_mode: str | None = None, disable_preview: bool = True
) -> tuple[int, dict]:
    payload: dict = {
        "chat_id": chat_id,
        "text": text,
        "disable_web_page_preview": disable_preview,
    }
    if parse_mode:
        payload["parse_mode"] = parse_mode
    return _call(token=token, method="sendMessage", payload=payload)


def get_chat(*, token: str, chat_id: str) -> tuple[int, dict]:
    """Resolve a chat by id or @username. Used to establish a destination."""
    return _call(token=token, method="getChat", payload={"chat_id": chat_id})
