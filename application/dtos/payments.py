"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class GatewayIntent(BaseModel):
    """A payment intent as reported by the gateway."""
    id: str
    status: str  # normalized: pending | succeeded | failed | canceled
    client_secret: Optional[str] = None
    provider: str


class RefundReceipt(BaseModel):
    id: str
    status: str
    provider: str
    amount: Optional[Decimal] = None


class InitiatePaymentRequest(BaseModel):
    payment_method: str = Field(default="card", max_length=30)


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1, max_length=200)


class PaymentInitiation(BaseModel):
    payment_id: int
    client_secret: Optional[str] = None
    amount: Decimal
    currency: str
    external_transaction_id: str
    reused: bool = False
