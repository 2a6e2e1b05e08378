from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sendworker.messaging.base import ReceivedMessage
from sendworker.schemas.send_queue import DeliveryMetadata, SendJob, encode_job
from sendworker.util.ids import new_uuid
from sendworker.util.time import now_utc

log = logging.getLogger("memory_queue")


@dataclass
class _Entry:
    message_id: str
    payload: dict
    enqueued_at: datetime
    visible_at: datetime
    delivery_count: int = 0


class MemorySendQueue:
    """In-process send queue for local runs and tests.

    Behaves like a broker with a visibility delay and a delivery counter: a
    nacked message becomes visible again until it has been delivered
    max_delivery_count times, then it moves to dead_letters.
    """

    def __init__(
        self,
        *,
        max_delivery_count: int = 10,
        redelivery_delay_seconds: float = 0.0,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.max_delivery_count = max_delivery_count
        self.redelivery_delay_seconds = redelivery_delay_seconds
        self._clock = clock
        self.pending: list[_Entry] = []
        self.in_flight: dict[str, _Entry] = {}
        self.dead_letters: list[_Entry] = []

    def send(self, job: SendJob, delay_seconds: float = 0.0) -> str:
        now = self._clock()
        entry = _Entry(
            message_id=new_uuid(),
            payload=encode_job(job),
            enqueued_at=now,
            visible_at=now + timedelta(seconds=delay_seconds),
        )
        self.pending.append(entry)
        return entry.message_id

    def send_delayed(self, job: SendJob, delay_seconds: float) -> None:
        self.send(job, delay_seconds)

    def receive(self) -> ReceivedMessage | None:
        now = self._clock()
        for i, entry in enumerate(self.pending):
            if entry.visible_at <= now:
                del self.pending[i]
                entry.delivery_count += 1
                self.in_flight[entry.message_id] = entry
                return ReceivedMessage(
                    payload=dict(entry.payload),
                    metadata=DeliveryMetadata(
                        delivery_count=entry.delivery_count,
                        enqueued_at=entry.enqueued_at,
                        message_id=entry.message_id,
                    ),
                )
        return None

    def ack(self, message: ReceivedMessage) -> None:
        self.in_flight.pop(message.metadata.message_id, None)

    def nack(self, message: ReceivedMessage) -> None:
        entry = self.in_flight.pop(message.metadata.message_id)
        if entry.delivery_count >= self.max_delivery_count:
            log.error("Message %s dead-lettered after %s deliveries", entry.message_id, entry.delivery_count)
            self.dead_letters.append(entry)
            return
        entry.visible_at = self._clock() + timedelta(seconds=self.redelivery_delay_seconds)
        self.pending.append(entry)
