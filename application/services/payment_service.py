"""
Application service orchestrating the payment lifecycle of an order.

initiate -> (customer pays at the gateway) -> confirm, plus refunds for
cancelled paid orders. Gateway calls never run while a unit of work is open:
each use-case reads in a read-only unit, talks to the gateway, then applies
status changes with compare-and-set updates in a short write unit. Repeating
any of these calls is safe.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.orders import Actor, OrderDTO
from application.dtos.payments import PaymentInitiation, RefundReceipt
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from domain.common.exceptions import (
    ActivePaymentExistsException,
    DomainValidationException,
    InvalidStatusTransitionException,
    OrderNotFoundException,
    OrderNotPayableException,
    PaymentAlreadyCompletedException,
    PaymentFailedException,
    PaymentGatewayException,
    PaymentNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderStatus
from domain.payment.entity import Payment, PaymentStatus


logger = get_logger(__name__)

GATEWAY_SUCCEEDED = "succeeded"
# intents that can never be paid; the customer needs a fresh one
GATEWAY_TERMINAL_FAILURES = frozenset({"failed", "canceled"})
# an order in one of these has been paid for, confirming again is a no-op
SETTLED_ORDER_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED})


def _initiation(payment: Payment, *, reused: bool) -> PaymentInitiation:
    return PaymentInitiation(
        payment_id=payment.id,
        client_secret=payment.client_secret,
        amount=payment.amount,
        currency=payment.currency,
        external_transaction_id=payment.external_transaction_id,
        reused=reused,
    )


class PaymentLifecycleService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway

    async def _load_order(self, uow: AbstractUnitOfWork, order_id: str, actor: Optional[Actor]) -> Order:
        order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        if actor is not None and not (actor.is_operator or order.is_owned_by(actor.id)):
            raise OrderNotFoundException(order_id)
        return order

    # ------------------------------------------------------------------
    # initiate
    # ------------------------------------------------------------------

    async def initiate_payment(
        self,
        order_id: str,
        actor: Optional[Actor] = None,
        payment_method: str = "card",
    ) -> PaymentInitiation:
        """
        Create a gateway intent for a PENDING order and record a pending payment.

        A second call while the first payment is still pending returns the
        existing client secret instead of opening another gateway intent,
        unless the gateway reports that intent as dead; then the payment is
        marked failed and a new one is started.
        """
        async with self._uow_factory(readonly=True) as uow:
            order = await self._load_order(uow, order_id, actor)
            if order.status is not OrderStatus.PENDING:
                raise OrderNotPayableException(order_id, order.status.value)
            existing = await uow.payment_repository.get_active_by_order(order_id)

        if existing is not None:
            if not await self._discard_if_dead(existing):
                return self._reuse(existing)

        if order.total <= 0:
            raise DomainValidationException(
                f"Order {order_id} has nothing to pay: total {order.total}",
                field="total",
            )

        logger.info(
            "payment_intent_request",
            order_id=order_id,
            provider=self.gateway.provider,
            amount=str(order.total),
            currency=order.currency,
        )
        intent = await self.gateway.create_intent(
            order.total,
            order.currency,
            {"order_id": order_id, "owner_id": order.owner_id},
        )

        try:
            async with self._uow_factory() as uow:
                current = await uow.order_repository.get_by_id(order_id)
                if current is None or current.status is not OrderStatus.PENDING:
                    raise OrderNotPayableException(order_id, current.status.value if current else "MISSING")
                payment = await uow.payment_repository.create(
                    Payment.start(
                        order_id=order_id,
                        amount=order.total,
                        currency=order.currency,
                        external_transaction_id=intent.id,
                        client_secret=intent.client_secret,
                        payment_method=payment_method,
                    )
                )
        except ActivePaymentExistsException:
            # a concurrent initiation committed first; hand out its intent
            async with self._uow_factory(readonly=True) as uow:
                winner = await uow.payment_repository.get_active_by_order(order_id)
            if winner is None:
                raise
            logger.info(
                "payment_initiation_race_lost",
                order_id=order_id,
                orphan_intent_id=intent.id,
                payment_id=winner.id,
            )
            return self._reuse(winner)

        logger.info(
            "payment_initiated",
            order_id=order_id,
            payment_id=payment.id,
            external_transaction_id=payment.external_transaction_id,
        )
        return _initiation(payment, reused=False)

    async def _discard_if_dead(self, payment: Payment) -> bool:
        if payment.status is not PaymentStatus.PENDING:
            return False
        intent = await self.gateway.retrieve_intent(payment.external_transaction_id)
        if intent.status not in GATEWAY_TERMINAL_FAILURES:
            return False
        await self.mark_payment_failed(payment.order_id, payment.external_transaction_id)
        return True

    def _reuse(self, payment: Payment) -> PaymentInitiation:
        if payment.status is not PaymentStatus.PENDING:
            raise PaymentAlreadyCompletedException(payment.order_id)
        logger.info("payment_initiation_reused", order_id=payment.order_id, payment_id=payment.id)
        return _initiation(payment, reused=True)

    # ------------------------------------------------------------------
    # confirm
    # ------------------------------------------------------------------

    async def confirm_payment(
        self,
        order_id: str,
        external_transaction_id: str,
        actor: Optional[Actor] = None,
    ) -> OrderDTO:
        """
        Mark the payment completed and the order PAID once the gateway reports success.

        Duplicate confirmations (client retry, repeated webhook) return the
        already-paid order without touching anything.
        """
        async with self._uow_factory(readonly=True) as uow:
            order = await self._load_order(uow, order_id, actor)
            payment = await uow.payment_repository.get_by_external_id(external_transaction_id)
        if payment is None or payment.order_id != order_id:
            raise PaymentNotFoundException(external_transaction_id)

        if payment.status is PaymentStatus.COMPLETED and order.status in SETTLED_ORDER_STATUSES:
            logger.info("payment_confirm_duplicate", order_id=order_id, payment_id=payment.id)
            return OrderDTO.from_entity(order)
        if payment.status is PaymentStatus.COMPLETED and order.status is OrderStatus.CANCELLED:
            # captured money for a cancelled order stays queued for refund
            raise InvalidStatusTransitionException(order_id, order.status.value, OrderStatus.PAID.value)
        if payment.status is PaymentStatus.FAILED:
            raise PaymentFailedException(order_id, payment.status.value)
        if payment.status is PaymentStatus.REFUNDED:
            raise InvalidStatusTransitionException(order_id, order.status.value, OrderStatus.PAID.value)

        intent = await self.gateway.retrieve_intent(external_transaction_id)
        if intent.status != GATEWAY_SUCCEEDED:
            logger.warning(
                "payment_not_successful",
                order_id=order_id,
                external_transaction_id=external_transaction_id,
                gateway_status=intent.status,
            )
            raise PaymentFailedException(order_id, intent.status)

        captured_for_cancelled = False
        async with self._uow_factory() as uow:
            completed = await uow.payment_repository.transition(
                payment.id, PaymentStatus.PENDING, PaymentStatus.COMPLETED
            )
            if completed:
                paid = await uow.order_repository.transition(order_id, [OrderStatus.PENDING], OrderStatus.PAID)
                if not paid:
                    current = await uow.order_repository.get_by_id(order_id)
                    if current is None or current.status is not OrderStatus.CANCELLED:
                        raise InvalidStatusTransitionException(
                            order_id,
                            current.status.value if current else "MISSING",
                            OrderStatus.PAID.value,
                        )
                    # money was captured after the order was cancelled: keep the
                    # payment completed and queue the order for a refund
                    await uow.order_repository.transition(
                        order_id, [OrderStatus.CANCELLED], OrderStatus.CANCELLED, refund_required=True
                    )
                    captured_for_cancelled = True
            else:
                stored = await uow.payment_repository.get_by_id(payment.id)
                if stored is None or stored.status is not PaymentStatus.COMPLETED:
                    raise InvalidStatusTransitionException(
                        order_id, order.status.value, OrderStatus.PAID.value
                    )
            updated = await uow.order_repository.get_by_id(order_id)

        if captured_for_cancelled:
            logger.error(
                "payment_captured_for_cancelled_order",
                order_id=order_id,
                payment_id=payment.id,
            )
            raise InvalidStatusTransitionException(order_id, OrderStatus.CANCELLED.value, OrderStatus.PAID.value)

        if completed:
            logger.info(
                "payment_confirmed",
                order_id=order_id,
                payment_id=payment.id,
                external_transaction_id=external_transaction_id,
            )
        else:
            logger.info("payment_confirm_duplicate", order_id=order_id, payment_id=payment.id)
        return OrderDTO.from_entity(updated)

    async def mark_payment_failed(self, order_id: str, external_transaction_id: str) -> bool:
        """Record a gateway-reported failure so the customer can start a fresh payment."""
        async with self._uow_factory() as uow:
            payment = await uow.payment_repository.get_by_external_id(external_transaction_id)
            if payment is None or payment.order_id != order_id:
                raise PaymentNotFoundException(external_transaction_id)
            changed = await uow.payment_repository.transition(
                payment.id, PaymentStatus.PENDING, PaymentStatus.FAILED
            )
        logger.info(
            "payment_failed",
            order_id=order_id,
            payment_id=payment.id,
            applied=changed,
        )
        return changed

    # ------------------------------------------------------------------
    # refunds
    # ------------------------------------------------------------------

    async def refund_cancelled_order(self, order_id: str) -> Optional[RefundReceipt]:
        """
        Refund the completed payment of a cancelled order flagged refund_required.

        Returns None when there is nothing to refund (flag already cleared, or
        no captured payment); the flag is cleared in that case too.
        """
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            payment = await uow.payment_repository.get_active_by_order(order_id)

        if not order.refund_required:
            return None

        if payment is None or payment.status is not PaymentStatus.COMPLETED:
            async with self._uow_factory() as uow:
                await uow.order_repository.clear_refund_required(order_id)
            logger.info(
                "order_refund_not_needed",
                order_id=order_id,
                payment_status=payment.status.value if payment else None,
            )
            return None

        logger.info(
            "payment_refund_request",
            order_id=order_id,
            payment_id=payment.id,
            provider=self.gateway.provider,
            amount=str(payment.amount),
        )
        receipt = await self.gateway.refund(
            payment.external_transaction_id, payment.amount, payment.currency
        )

        async with self._uow_factory() as uow:
            await uow.payment_repository.transition(
                payment.id, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, refund_id=receipt.id
            )
            await uow.order_repository.clear_refund_required(order_id)

        logger.info("order_refunded", order_id=order_id, payment_id=payment.id, refund_id=receipt.id)
        return receipt

    async def retry_pending_refunds(self, limit: int = 50) -> dict[str, int]:
        """Sweep cancelled orders still flagged refund_required."""
        async with self._uow_factory(readonly=True) as uow:
            pending = await uow.order_repository.list_refund_required(limit)

        summary = {"attempted": 0, "refunded": 0, "failed": 0}
        for order in pending:
            summary["attempted"] += 1
            try:
                receipt = await self.refund_cancelled_order(order.id)
            except PaymentGatewayException as exc:
                summary["failed"] += 1
                logger.error("refund_retry_failed", order_id=order.id, error=exc.message)
                continue
            if receipt is not None:
                summary["refunded"] += 1
        logger.info("refund_retry_sweep", **summary)
        return summary

    async def aclose(self) -> None:
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()
