from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Stored when a fault happened but the queue will redeliver the message.
CONTINUE_STATUS_CODE = 100
# Stored when a fault happened on the last delivery before dead-lettering.
INTERNAL_ERROR_STATUS_CODE = 500
TOO_MANY_REQUESTS = 429
NOT_FOUND = 404
FORBIDDEN = 403


class SendNotificationResultType(str, Enum):
    SUCCEEDED = "Succeeded"
    THROTTLED = "Throttled"
    FAILED = "Failed"


@dataclass(frozen=True)
class SendNotificationResponse:
    result_type: SendNotificationResultType
    status_code: int
    number_of_throttle_responses: int = 0
    error_message: str | None = None

    @classmethod
    def succeeded(cls, status_code: int, *, throttles: int = 0) -> "SendNotificationResponse":
        return cls(SendNotificationResultType.SUCCEEDED, status_code, throttles)

    @classmethod
    def throttled(cls, *, throttles: int) -> "SendNotificationResponse":
        return cls(SendNotificationResultType.THROTTLED, TOO_MANY_REQUESTS, throttles)

    @classmethod
    def failed(cls, status_code: int, error_message: str, *, throttles: int = 0) -> "SendNotificationResponse":
        return cls(SendNotificationResultType.FAILED, status_code, throttles, error_message)


def delivery_status_for(status_code: int) -> str:
    if 200 <= status_code < 300:
        return "Succeeded"
    if status_code == TOO_MANY_REQUESTS:
        return "Throttled"
    # 403: the recipient blocked the bot
    if status_code in (NOT_FOUND, FORBIDDEN):
        return "RecipientNotFound"
    if status_code == CONTINUE_STATUS_CODE:
        return "Retrying"
    return "Failed"
