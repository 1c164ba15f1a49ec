"""
Stripe PaymentIntents adapter using the official stripe-python SDK.

The SDK is synchronous, so every call runs in a worker thread. Connection
and rate-limit errors are retried with tenacity; the SDK's own network
retries are disabled to keep a single retry policy. Refunds carry an
idempotency key derived from the intent so a retried refund never pays out
twice.
"""
from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any, Callable, Optional

import stripe

from application.dtos.payments import GatewayIntent, RefundReceipt
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.common.exceptions import PaymentGatewayException
from shared.codes.payment_codes import PaymentCode
from infrastructure.external.payments.base import BasePaymentClient


logger = get_logger(__name__)

ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "CLP"}


class StripeGateway(BasePaymentClient):
    provider = "stripe"
    retryable_errors = (stripe.APIConnectionError, stripe.RateLimitError)

    def __init__(self, secret_key: Optional[str] = None):
        super().__init__(
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
        )
        key = secret_key or payment_settings.stripe.secret_key
        if not key:
            raise RuntimeError("PAYMENT__STRIPE__SECRET_KEY not configured")
        stripe.api_key = key
        stripe.max_network_retries = 0
        if payment_settings.stripe.api_version:
            stripe.api_version = payment_settings.stripe.api_version

    @staticmethod
    def _exponent(currency: str) -> int:
        return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2

    @classmethod
    def _to_minor(cls, amount: Decimal, currency: str) -> int:
        # Stripe expects amounts in the smallest currency unit
        return int((amount * (Decimal(10) ** cls._exponent(currency))).to_integral_value())

    @classmethod
    def _from_minor(cls, amount: int, currency: str) -> Decimal:
        return Decimal(amount) / (Decimal(10) ** cls._exponent(currency))

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        deadline = payment_settings.timeouts.total
        try:
            return await self._retry(
                lambda: asyncio.wait_for(asyncio.to_thread(fn, **kwargs), timeout=deadline)
            )
        except asyncio.TimeoutError as exc:
            logger.warning("stripe_timeout", operation=operation, timeout=deadline)
            raise PaymentGatewayException(
                "Payment provider timed out",
                provider=self.provider,
                retryable=True,
                details={"operation": operation},
                code=PaymentCode.TIMEOUT,
            ) from exc
        except self.retryable_errors as exc:
            logger.warning("stripe_unavailable", operation=operation, error=str(exc))
            raise PaymentGatewayException(
                "Payment provider is unavailable",
                provider=self.provider,
                retryable=True,
                details={"operation": operation},
                code=PaymentCode.RATE_LIMITED if isinstance(exc, stripe.RateLimitError) else None,
            ) from exc
        except stripe.StripeError as exc:
            logger.error("stripe_error", operation=operation, error=str(exc), provider_code=exc.code)
            raise PaymentGatewayException(
                exc.user_message or "Payment provider rejected the request",
                provider=self.provider,
                retryable=False,
                details={"operation": operation, "provider_code": exc.code},
            ) from exc

    def _intent(self, pi: Any) -> GatewayIntent:
        return GatewayIntent(
            id=str(pi["id"]),
            status=self._map_status(str(pi["status"])),
            client_secret=pi.get("client_secret"),
            provider=self.provider,
        )

    async def create_intent(self, amount: Decimal, currency: str, metadata: dict[str, Any]) -> GatewayIntent:  # type: ignore[override]
        pi = await self._call(
            "create_intent",
            stripe.PaymentIntent.create,
            amount=self._to_minor(amount, currency),
            currency=currency.lower(),
            metadata={k: str(v) for k, v in metadata.items()},
            automatic_payment_methods={"enabled": True},
        )
        self._log("payment_intent_created", intent_id=pi["id"], status=pi["status"])
        return self._intent(pi)

    async def retrieve_intent(self, intent_id: str) -> GatewayIntent:  # type: ignore[override]
        pi = await self._call("retrieve_intent", stripe.PaymentIntent.retrieve, id=intent_id)
        return self._intent(pi)

    async def refund(  # type: ignore[override]
        self, intent_id: str, amount: Optional[Decimal] = None, currency: Optional[str] = None
    ) -> RefundReceipt:
        params: dict[str, Any] = {
            "payment_intent": intent_id,
            "idempotency_key": f"refund-{intent_id}",
        }
        # minor units follow the currency the payment was taken in
        currency = (currency or payment_settings.currency).upper()
        if amount is not None:
            params["amount"] = self._to_minor(amount, currency)
        refund = await self._call("refund", stripe.Refund.create, **params)
        status = self._map_refund_status(str(refund.get("status") or ""))
        self._log("payment_refund_created", intent_id=intent_id, refund_id=refund["id"], status=status)
        if status == "failed":
            raise PaymentGatewayException(
                "Refund was rejected by the provider",
                provider=self.provider,
                retryable=False,
                details={"operation": "refund", "refund_id": refund["id"], "failure_reason": refund.get("failure_reason")},
                code=PaymentCode.REFUND_REJECTED,
            )
        refund_currency = str(refund.get("currency") or currency)
        return RefundReceipt(
            id=str(refund["id"]),
            status=status,
            provider=self.provider,
            amount=self._from_minor(int(refund["amount"]), refund_currency) if refund.get("amount") is not None else None,
        )
