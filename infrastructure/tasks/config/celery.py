"""Celery application configuration

Celery carries compensation work only: refunds that could not be issued right
after a PAID order was cancelled. Checkout requests never wait on it.
"""
from __future__ import annotations

import os
from celery import Celery
from kombu import Exchange, Queue

from core.config import settings
from core.logging_config import get_logger
from .beat import CELERY_BEAT_SCHEDULE


logger = get_logger(__name__)

TASK_PACKAGES = ("infrastructure.tasks.tasks",)
PAYMENTS_QUEUE = "payments"

celery_app = Celery("storefront")

celery_app.conf.update(
    broker_url=settings.redis.url or os.getenv("CELERY_BROKER_URL"),
    result_backend=settings.redis.url or os.getenv("CELERY_RESULT_BACKEND"),
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # a refund attempt is acked only once it finished; re-running one is safe
    # because refunds are idempotent per payment intent
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    task_default_queue="default",
    task_default_retry_delay=30,
    task_queues=(
        Queue(PAYMENTS_QUEUE, Exchange(PAYMENTS_QUEUE), routing_key=PAYMENTS_QUEUE),
        Queue("default"),
    ),
    task_routes={"payments.*": {"queue": PAYMENTS_QUEUE, "routing_key": PAYMENTS_QUEUE}},
    beat_schedule=CELERY_BEAT_SCHEDULE,
    imports=TASK_PACKAGES,
)

if (settings.ENVIRONMENT or "").lower() in {"development", "dev", "test", "testing"}:
    # no broker locally: tasks run inline in the caller
    celery_app.conf.task_always_eager = True

celery_app.autodiscover_tasks(packages=TASK_PACKAGES)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        broker=sender.conf.broker_url,
        eager=bool(sender.conf.task_always_eager),
        refund_sweep_interval=CELERY_BEAT_SCHEDULE["payments-retry-refunds"]["schedule"],
    )
