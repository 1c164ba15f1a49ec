"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; every key is read from PAYMENT__*,
e.g. PAYMENT__DEFAULT_PROVIDER or PAYMENT__STRIPE__SECRET_KEY.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    # per provider call, across the worker thread hop
    total: float = 10.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    api_version: Optional[str] = None


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="inmemory")  # inmemory | stripe
    currency: str = Field(default="USD")
    # PAID -> CANCELLED: refund through the gateway right after cancellation.
    # When disabled, cancelled orders stay flagged (refund_required) for operators.
    auto_refund: bool = True
    refund_retry_interval_seconds: int = 300
    refund_retry_batch_size: int = 50

    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    stripe: StripeSettings = Field(default_factory=StripeSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
