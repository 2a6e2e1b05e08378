from __future__ import annotations

from redis import Redis

from sendworker.core.config import settings
from sendworker.core.db import SessionLocal
from sendworker.messaging.base import SendQueue
from sendworker.send.delay import DelaySendingNotificationService
from sendworker.send.orchestrator import SendOrchestrator
from sendworker.send.params import GetSendNotificationParamsService
from sendworker.send.results import ManageResultDataService
from sendworker.send.sender import SendNotificationService
from sendworker.send.throttle import (
    GlobalThrottleGate,
    RedisThrottleStateStore,
    SqlThrottleStateStore,
    ThrottleStateStore,
)


def build_throttle_store() -> ThrottleStateStore:
    if settings.THROTTLE_STATE_BACKEND == "redis":
        return RedisThrottleStateStore(Redis.from_url(settings.REDIS_URL), key=settings.THROTTLE_STATE_REDIS_KEY)
    if settings.THROTTLE_STATE_BACKEND == "db":
        return SqlThrottleStateStore(SessionLocal)
    raise ValueError(f"Unknown THROTTLE_STATE_BACKEND={settings.THROTTLE_STATE_BACKEND}")


def build_orchestrator(*, send_queue: SendQueue | None = None) -> SendOrchestrator:
    if send_queue is None:
        from sendworker.messaging.celery_queue import CelerySendQueue

        send_queue = CelerySendQueue()

    gate = GlobalThrottleGate(build_throttle_store())
    results = ManageResultDataService(SessionLocal)
    delay = DelaySendingNotificationService(gate=gate, send_queue=send_queue)
    params = GetSendNotificationParamsService(
        session_factory=SessionLocal,
        delay_service=delay,
        result_service=results,
        token=settings.TELEGRAM_BOT_TOKEN,
        max_number_of_attempts=settings.MAX_NUMBER_OF_ATTEMPTS,
        send_retry_delay_number_of_seconds=settings.SEND_RETRY_DELAY_NUMBER_OF_SECONDS,
    )

    return SendOrchestrator(
        gate=gate,
        send_queue=send_queue,
        params_service=params,
        send_service=SendNotificationService(token=settings.TELEGRAM_BOT_TOKEN),
        delay_service=delay,
        result_service=results,
        max_number_of_attempts=settings.MAX_NUMBER_OF_ATTEMPTS,
        send_retry_delay_number_of_seconds=settings.SEND_RETRY_DELAY_NUMBER_OF_SECONDS,
    )
