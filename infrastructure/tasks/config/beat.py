"""Celery beat schedule configuration.

The refund sweep re-attempts gateway refunds for cancelled orders whose
refund failed right after cancellation (orders still flagged refund_required).
"""
from __future__ import annotations

from core.settings import payment_settings

CELERY_BEAT_SCHEDULE = {
    "payments-retry-refunds": {
        "task": "payments.retry_refunds",
        "schedule": payment_settings.refund_retry_interval_seconds,
        "kwargs": {"limit": payment_settings.refund_retry_batch_size},
    },
}
