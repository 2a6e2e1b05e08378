from __future__ import annotations

import logging

from sendworker.messaging.base import SendQueue
from sendworker.schemas.send_queue import SendJob
from sendworker.send.throttle import GlobalThrottleGate

log = logging.getLogger("delay")


class DelaySendingNotificationService:
    def __init__(self, *, gate: GlobalThrottleGate, send_queue: SendQueue):
        self._gate = gate
        self._send_queue = send_queue

    def delay_sending_notification(self, *, send_retry_delay_number_of_seconds: float, job: SendJob) -> None:
        """Hold back every worker, then put this job back with the same delay.

        Errors from either step propagate: losing the requeue would drop the job.
        """

        self._gate.raise_deadline(send_retry_delay_number_of_seconds)
        self._send_queue.send_delayed(job, send_retry_delay_number_of_seconds)
        log.info(
            "Requeued notification=%s recipient=%s in %ss",
            job.notification_id,
            job.recipient_id,
            send_retry_delay_number_of_seconds,
        )
