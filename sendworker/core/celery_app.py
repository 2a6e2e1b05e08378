from __future__ import annotations

from celery import Celery
from celery.signals import setup_logging

from sendworker.core.config import settings
from sendworker.core.logging import configure_logging

celery = Celery(
    "sendworker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["sendworker.tasks.send_tasks"],
)

celery.conf.update(
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    task_default_queue="default",
    task_routes={"sendworker.tasks.send_tasks.send_notification": {"queue": settings.SEND_QUEUE_NAME}},
    # A message is only consumed once the invocation returns; lost workers redeliver.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)


@setup_logging.connect
def _setup_logging(**_kwargs) -> None:
    configure_logging(settings.LOG_LEVEL)
