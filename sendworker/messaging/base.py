from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sendworker.schemas.send_queue import DeliveryMetadata, SendJob


class SendQueue(Protocol):
    def send_delayed(self, job: SendJob, delay_seconds: float) -> None: ...


@dataclass(frozen=True)
class ReceivedMessage:
    payload: dict | str
    metadata: DeliveryMetadata


class QueueConsumer(Protocol):
    """Consumption surface of an at-least-once queue.

    ack() consumes the message. nack() hands it back for redelivery, or to the
    dead-letter destination once the queue's own delivery ceiling is reached.
    """

    def receive(self) -> ReceivedMessage | None: ...

    def ack(self, message: ReceivedMessage) -> None: ...

    def nack(self, message: ReceivedMessage) -> None: ...
