from __future__ import annotations

from sendworker.core.config import settings
from sendworker.schemas.send_queue import SendJob, encode_job
from sendworker.util.time import now_utc


class CelerySendQueue:
    """Publishes send jobs as send_notification tasks on the send queue."""

    def send(self, job: SendJob, delay_seconds: float = 0.0) -> str:
        # Imported lazily: the task module builds its orchestrator around this queue.
        from sendworker.tasks.send_tasks import send_notification

        res = send_notification.apply_async(
            kwargs={"payload": encode_job(job), "enqueued_at": now_utc().isoformat()},
            countdown=delay_seconds or None,
            queue=settings.SEND_QUEUE_NAME,
        )
        return res.id

    def send_delayed(self, job: SendJob, delay_seconds: float) -> None:
        self.send(job, delay_seconds)
