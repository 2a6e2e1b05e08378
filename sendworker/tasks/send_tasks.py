from __future__ import annotations

import logging
from datetime import datetime

from celery.exceptions import Reject

from sendworker.core.celery_app import celery
from sendworker.core.config import settings
from sendworker.core.db import SessionLocal
from sendworker.messaging.dead_letter import DeadLetterStore
from sendworker.schemas.send_queue import DeliveryMetadata
from sendworker.send.orchestrator import MAX_DELIVERY_COUNT_FOR_DEAD_LETTER, Decision, SendOrchestrator
from sendworker.send.wiring import build_orchestrator
from sendworker.util.ids import new_uuid

log = logging.getLogger("send_tasks")

_orchestrator: SendOrchestrator | None = None
_dead_letters: DeadLetterStore | None = None


def get_orchestrator() -> SendOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator


def get_dead_letter_store() -> DeadLetterStore:
    global _dead_letters
    if _dead_letters is None:
        _dead_letters = DeadLetterStore(SessionLocal)
    return _dead_letters


@celery.task(
    bind=True,
    name="sendworker.tasks.send_tasks.send_notification",
    acks_late=True,
    max_retries=None,
    soft_time_limit=settings.SEND_TASK_SOFT_TIME_LIMIT_SECONDS,
    time_limit=settings.SEND_TASK_TIME_LIMIT_SECONDS,
)
def send_notification(self, payload: dict, enqueued_at: str | None = None) -> dict:
    """Send-queue consumer.

    Delivery count is Celery's retry counter plus one; retries keep the task id,
    so the message id is stable across redeliveries. On a fault the message is
    retried until the dead-letter margin, then stored as a dead letter and
    rejected without requeue.
    """

    metadata = DeliveryMetadata(
        delivery_count=(self.request.retries or 0) + 1,
        enqueued_at=datetime.fromisoformat(enqueued_at) if enqueued_at else None,
        message_id=self.request.id or new_uuid(),
    )

    result = get_orchestrator().run(payload, metadata)
    if result.decision is Decision.ACK:
        return result.as_dict()

    if metadata.delivery_count >= MAX_DELIVERY_COUNT_FOR_DEAD_LETTER:
        get_dead_letter_store().route(payload, metadata, result.error)
        raise Reject(result.error, requeue=False)

    raise self.retry(exc=result.error, countdown=settings.REDELIVERY_DELAY_SECONDS)
