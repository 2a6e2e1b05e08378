"""Drives one send-queue message to a single terminal decision.

Per invocation exactly one of these happens: nothing (force close), a requeue
(deferred or throttled), a result record (succeeded or failed), or a result
record followed by handing the fault back to the queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from sendworker.messaging.base import SendQueue
from sendworker.schemas.send_queue import DeliveryMetadata, SendJob, decode_job
from sendworker.send.delay import DelaySendingNotificationService
from sendworker.send.outcomes import (
    CONTINUE_STATUS_CODE,
    INTERNAL_ERROR_STATUS_CODE,
    SendNotificationResultType,
)
from sendworker.send.params import GetSendNotificationParamsService
from sendworker.send.results import ManageResultDataService
from sendworker.send.sender import SendNotificationService
from sendworker.send.throttle import Admission, GlobalThrottleGate

log = logging.getLogger("orchestrator")

# Brokers dead-letter after 10 deliveries by default; must not exceed the broker's ceiling.
MAX_DELIVERY_COUNT_FOR_DEAD_LETTER = 10


class Decision(str, Enum):
    ACK = "ack"
    RETRY_OR_DEAD_LETTER = "retry_or_dead_letter"


@dataclass(frozen=True)
class SendDecision:
    decision: Decision
    path: str  # deferred | force_closed | succeeded | throttled | failed | fault | undecodable
    error: BaseException | None = None
    status_code: int | None = None

    def as_dict(self) -> dict:
        return {
            "ok": self.decision is Decision.ACK,
            "decision": self.decision.value,
            "path": self.path,
            "status_code": self.status_code,
            "error": str(self.error) if self.error else None,
        }


class SendOrchestrator:
    def __init__(
        self,
        *,
        gate: GlobalThrottleGate,
        send_queue: SendQueue,
        params_service: GetSendNotificationParamsService,
        send_service: SendNotificationService,
        delay_service: DelaySendingNotificationService,
        result_service: ManageResultDataService,
        max_number_of_attempts: int,
        send_retry_delay_number_of_seconds: float,
    ):
        self.gate = gate
        self.send_queue = send_queue
        self.params_service = params_service
        self.send_service = send_service
        self.delay_service = delay_service
        self.result_service = result_service
        self.max_number_of_attempts = max_number_of_attempts
        self.send_retry_delay_number_of_seconds = send_retry_delay_number_of_seconds

    def run(self, payload: dict | str | bytes, metadata: DeliveryMetadata) -> SendDecision:
        try:
            job = decode_job(payload)
        except ValueError as e:
            # No recipient to record against; let the queue redeliver or dead-letter it.
            log.error("Undecodable send message %s: %s", metadata.message_id, e)
            return SendDecision(Decision.RETRY_OR_DEAD_LETTER, "undecodable", error=e)

        total_number_of_throttles = 0
        try:
            if self.gate.check_admission() is Admission.DEFER:
                self.send_queue.send_delayed(job, self.send_retry_delay_number_of_seconds)
                log.info("System throttled; deferred notification=%s recipient=%s", job.notification_id, job.recipient_id)
                return SendDecision(Decision.ACK, "deferred")

            params = self.params_service.get_send_notification_params(job)
            if params.force_close:
                return SendDecision(Decision.ACK, "force_closed")

            total_number_of_throttles += params.total_number_of_throttles

            response = self.send_service.send(
                params=params.params,
                max_number_of_attempts=self.max_number_of_attempts,
            )
            total_number_of_throttles += response.number_of_throttle_responses

            if response.result_type is SendNotificationResultType.SUCCEEDED:
                log.info("MESSAGE SENT SUCCESSFULLY")
                self.result_service.process_result_data(
                    notification_id=job.notification_id,
                    recipient_id=params.recipient_id,
                    total_number_of_throttles=total_number_of_throttles,
                    is_status_code_from_create_conversation=False,
                    status_code=response.status_code,
                )
                return SendDecision(Decision.ACK, "succeeded", status_code=response.status_code)

            if response.result_type is SendNotificationResultType.THROTTLED:
                log.error("MESSAGE THROTTLED")
                self.delay_service.delay_sending_notification(
                    send_retry_delay_number_of_seconds=self.send_retry_delay_number_of_seconds,
                    job=job,
                )
                return SendDecision(Decision.ACK, "throttled", status_code=response.status_code)

            log.error("MESSAGE FAILED: %s", response.status_code)
            self.result_service.process_result_data(
                notification_id=job.notification_id,
                recipient_id=params.recipient_id,
                total_number_of_throttles=total_number_of_throttles,
                is_status_code_from_create_conversation=False,
                status_code=response.status_code,
                error_message=response.error_message,
            )
            return SendDecision(Decision.ACK, "failed", status_code=response.status_code)
        except Exception as e:
            return self._handle_fault(job, metadata, total_number_of_throttles, e)

    def _handle_fault(
        self, job: SendJob, metadata: DeliveryMetadata, total_number_of_throttles: int, error: Exception
    ) -> SendDecision:
        log.exception("ERROR: %s, %s", error, type(error).__name__)

        status_code = CONTINUE_STATUS_CODE
        if metadata.delivery_count >= MAX_DELIVERY_COUNT_FOR_DEAD_LETTER:
            status_code = INTERNAL_ERROR_STATUS_CODE

        try:
            # Recipient comes from the payload: resolution may not have finished.
            self.result_service.process_result_data(
                notification_id=job.notification_id,
                recipient_id=job.recipient_id,
                total_number_of_throttles=total_number_of_throttles,
                is_status_code_from_create_conversation=False,
                status_code=status_code,
                error_message=str(error),
            )
        except Exception:
            log.exception("Could not store fault result for notification=%s", job.notification_id)

        return SendDecision(Decision.RETRY_OR_DEAD_LETTER, "fault", error=error, status_code=status_code)
