"""
Base payment client implementing shared concerns: retry, logging, status mapping.

Concrete providers subclass and implement the three gateway calls.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.logging_config import get_logger
from application.dtos.payments import GatewayIntent, RefundReceipt
from application.ports.payment_gateway import PaymentGateway
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL, REFUND_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient(PaymentGateway):
    provider: str = "base"
    # transport-level errors that are safe to retry before giving up
    retryable_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, *, retry: Optional[dict[str, Any]] = None) -> None:
        self._retry_cfg = retry or {"max": 2, "base": 0.2}

    async def aclose(self) -> None:
        """Release provider resources; nothing to do by default."""
        return None

    async def _retry(self, fn: Callable[[], Awaitable[Any]]):
        if not self.retryable_errors:
            return await fn()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(int(self._retry_cfg["max"]) + 1),
            wait=wait_exponential(multiplier=self._retry_cfg["base"], min=0.1, max=2.0),
            retry=retry_if_exception_type(self.retryable_errors),
            reraise=True,
        ):
            with attempt:
                return await fn()

    async def create_intent(self, amount: Decimal, currency: str, metadata: dict[str, Any]) -> GatewayIntent:  # type: ignore[override]
        raise NotImplementedError

    async def retrieve_intent(self, intent_id: str) -> GatewayIntent:  # type: ignore[override]
        raise NotImplementedError

    async def refund(  # type: ignore[override]
        self, intent_id: str, amount: Optional[Decimal] = None, currency: Optional[str] = None
    ) -> RefundReceipt:
        raise NotImplementedError

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _map_refund_status(self, provider_status: str) -> str:
        mapping = REFUND_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
