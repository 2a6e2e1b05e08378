from __future__ import annotations

import logging

from sendworker.messaging.base import QueueConsumer
from sendworker.send.orchestrator import Decision, SendDecision, SendOrchestrator

log = logging.getLogger("runner")


def process_next(consumer: QueueConsumer, orchestrator: SendOrchestrator) -> SendDecision | None:
    """Take one message off the consumer and settle it. None when nothing is visible."""

    message = consumer.receive()
    if message is None:
        return None

    result = orchestrator.run(message.payload, message.metadata)
    if result.decision is Decision.ACK:
        consumer.ack(message)
    else:
        log.warning(
            "Message %s handed back (delivery %s): %s",
            message.metadata.message_id,
            message.metadata.delivery_count,
            result.error,
        )
        consumer.nack(message)
    return result


def drain(consumer: QueueConsumer, orchestrator: SendOrchestrator, *, limit: int = 100) -> dict:
    processed = 0
    acked = 0
    while processed < limit:
        result = process_next(consumer, orchestrator)
        if result is None:
            break
        processed += 1
        if result.decision is Decision.ACK:
            acked += 1
    return {"ok": True, "processed": processed, "acked": acked, "nacked": processed - acked}
