"""
In-process payment gateway for local development and tests.

Intents start as ``pending`` (or ``succeeded`` with ``auto_succeed``); tests
drive them with :meth:`InMemoryGateway.set_status` and can simulate an
outage with ``unavailable``. Every call is recorded in ``calls``.
"""
from __future__ import annotations

import itertools
from decimal import Decimal
from typing import Any, Optional

from application.dtos.payments import GatewayIntent, RefundReceipt
from domain.common.exceptions import PaymentGatewayException
from infrastructure.external.payments.base import BasePaymentClient


class InMemoryGateway(BasePaymentClient):
    provider = "inmemory"

    def __init__(self, *, auto_succeed: bool = False) -> None:
        super().__init__()
        self.auto_succeed = auto_succeed
        self.unavailable = False
        self.fail_refunds = False
        self.calls: list[tuple[str, str]] = []
        self._intents: dict[str, dict[str, Any]] = {}
        self._refunds: dict[str, RefundReceipt] = {}
        self._seq = itertools.count(1)

    def _guard(self, operation: str) -> None:
        if self.unavailable:
            raise PaymentGatewayException(
                "Payment provider is unavailable",
                provider=self.provider,
                retryable=True,
                details={"operation": operation},
            )

    def set_status(self, intent_id: str, status: str) -> None:
        self._intents[intent_id]["status"] = status

    def intent_count(self) -> int:
        return len(self._intents)

    async def create_intent(self, amount: Decimal, currency: str, metadata: dict[str, Any]) -> GatewayIntent:  # type: ignore[override]
        self.calls.append(("create_intent", str(metadata.get("order_id", ""))))
        self._guard("create_intent")
        intent_id = f"pi_mem_{next(self._seq):06d}"
        self._intents[intent_id] = {
            "status": "succeeded" if self.auto_succeed else "pending",
            "amount": amount,
            "currency": currency,
            "metadata": dict(metadata),
        }
        self._log("payment_intent_created", intent_id=intent_id)
        return GatewayIntent(
            id=intent_id,
            status=self._intents[intent_id]["status"],
            client_secret=f"{intent_id}_secret",
            provider=self.provider,
        )

    async def retrieve_intent(self, intent_id: str) -> GatewayIntent:  # type: ignore[override]
        self.calls.append(("retrieve_intent", intent_id))
        self._guard("retrieve_intent")
        intent = self._intents.get(intent_id)
        if intent is None:
            raise PaymentGatewayException(
                f"No such payment intent: {intent_id}",
                provider=self.provider,
                retryable=False,
            )
        return GatewayIntent(id=intent_id, status=intent["status"], provider=self.provider)

    async def refund(  # type: ignore[override]
        self, intent_id: str, amount: Optional[Decimal] = None, currency: Optional[str] = None
    ) -> RefundReceipt:
        self.calls.append(("refund", intent_id))
        self._guard("refund")
        if self.fail_refunds:
            raise PaymentGatewayException(
                "Refund declined by provider",
                provider=self.provider,
                retryable=True,
                details={"intent_id": intent_id},
            )
        if intent_id in self._refunds:
            return self._refunds[intent_id]
        intent = self._intents.get(intent_id)
        if intent is None or intent["status"] != "succeeded":
            raise PaymentGatewayException(
                f"Payment intent {intent_id} has no captured funds",
                provider=self.provider,
                retryable=False,
            )
        receipt = RefundReceipt(
            id=f"re_mem_{next(self._seq):06d}",
            status="succeeded",
            provider=self.provider,
            amount=amount if amount is not None else intent["amount"],
        )
        self._refunds[intent_id] = receipt
        self._log("payment_refund_created", intent_id=intent_id, refund_id=receipt.id)
        return receipt
