"""
Gateway error codes (6xxxx) and provider status normalisation.

Order and stock errors live in BusinessCode; anything raised because the
payment provider misbehaved carries one of these codes instead.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    SUCCESS = 0

    PROVIDER_ERROR = 60000        # rejected, do not retry
    PROVIDER_RECOVERABLE = 60001  # connection failure, safe to retry
    TIMEOUT = 60003
    RATE_LIMITED = 60004
    REFUND_REJECTED = 60010


# Intent status as reported by the provider -> gateway status seen by services.
# Only "succeeded" confirms a payment.
PROVIDER_STATUS_TO_INTERNAL = {
    "stripe": {
        # also reported after a declined attempt; the intent stays payable
        "requires_payment_method": "pending",
        "requires_confirmation": "pending",
        "requires_action": "pending",
        "processing": "pending",
        "requires_capture": "pending",
        "succeeded": "succeeded",
        "canceled": "canceled",
    },
    "inmemory": {},
}

# Refund status -> internal. "pending" refunds are accepted: the provider
# settles them asynchronously and the idempotency key prevents a second payout.
REFUND_STATUS_TO_INTERNAL = {
    "stripe": {
        "pending": "pending",
        "requires_action": "pending",
        "succeeded": "succeeded",
        "failed": "failed",
        "canceled": "failed",
    },
    "inmemory": {},
}
