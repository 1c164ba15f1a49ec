"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Webhook signature verification belongs to the adapter/edge and happens before
the application is asked to confirm a payment.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable

from application.dtos.payments import GatewayIntent, RefundReceipt


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Implementations should be async and side-effect free beyond IO. Failures
    must surface as ``PaymentGatewayException`` so callers can retry safely.
    """

    provider: str

    async def create_intent(
        self, amount: Decimal, currency: str, metadata: dict[str, Any]
    ) -> GatewayIntent: ...

    async def retrieve_intent(self, intent_id: str) -> GatewayIntent: ...

    async def refund(
        self, intent_id: str, amount: Optional[Decimal] = None, currency: Optional[str] = None
    ) -> RefundReceipt: ...
