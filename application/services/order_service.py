"""
订单应用服务 - order creation, cancellation, fulfillment transitions and queries.

Every multi-entity change runs inside a single unit of work: the order row,
its items and the stock counters are committed together or not at all.
Gateway work (refund after cancelling a paid order) only starts after the
cancellation has been committed.
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple, List, TYPE_CHECKING

from application.dtos.orders import Actor, CartLine, OrderDTO
from core.logging_config import get_logger
from core.settings import payment_settings
from domain.catalog.entity import ProductSnapshot
from domain.common.exceptions import (
    EmptyCartException,
    ForbiddenException,
    InsufficientStockException,
    InvalidQuantityException,
    InvalidStatusTransitionException,
    OrderNotFoundException,
    PaymentGatewayException,
    ProductNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.state_machine import OPERATOR_TARGETS, ensure_transition, requires_refund

if TYPE_CHECKING:
    from application.services.payment_service import PaymentLifecycleService


logger = get_logger(__name__)


class OrderApplicationService:
    """订单应用服务 - 处理应用层逻辑"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        refunds: Optional["PaymentLifecycleService"] = None,
        currency: Optional[str] = None,
        auto_refund: Optional[bool] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._refunds = refunds
        self._currency = (currency or payment_settings.currency).upper()
        self._auto_refund = payment_settings.auto_refund if auto_refund is None else auto_refund

    # ------------------------------------------------------------------
    # Order builder
    # ------------------------------------------------------------------

    async def create_order(self, owner_id: str, lines: Sequence[CartLine]) -> OrderDTO:
        """
        Validate the cart, freeze prices and create the order while reserving stock.

        The stock pre-check only fails fast; the authoritative check is the
        conditional decrement inside the transaction, which also catches a
        concurrent buyer that took the last units after the pre-check.
        """
        quantities = self._merge_lines(lines)
        snapshots = await self._load_snapshots(quantities)

        items = [
            OrderItem(product_id=pid, quantity=qty, unit_price=snapshots[pid].price)
            for pid, qty in quantities.items()
        ]
        order = Order.place(owner_id, items, self._currency)

        async with self._uow_factory() as uow:
            created = await uow.order_repository.create(order)
            # fixed lock order across concurrent orders touching the same products
            for pid in sorted(quantities):
                qty = quantities[pid]
                if not await uow.stock_ledger.reserve(pid, qty):
                    logger.warning(
                        "order_rejected_insufficient_stock",
                        owner_id=owner_id,
                        product_id=pid,
                        quantity=qty,
                    )
                    raise InsufficientStockException(pid, qty)

        logger.info(
            "order_created",
            order_id=created.id,
            owner_id=owner_id,
            total=str(created.total),
            currency=created.currency,
            items=len(created.items),
        )
        return OrderDTO.from_entity(created)

    @staticmethod
    def _merge_lines(lines: Sequence[CartLine]) -> dict[str, int]:
        """Collapse repeated products into one line; order of first appearance is kept."""
        if not lines:
            raise EmptyCartException()
        merged: dict[str, int] = {}
        for line in lines:
            if line.quantity < 1:
                raise InvalidQuantityException(line.product_id, line.quantity)
            merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
        return merged

    async def _load_snapshots(self, quantities: dict[str, int]) -> dict[str, ProductSnapshot]:
        snapshots: dict[str, ProductSnapshot] = {}
        async with self._uow_factory(readonly=True) as uow:
            for pid, qty in quantities.items():
                snapshot = await uow.catalog.get_snapshot(pid)
                if snapshot is None or not snapshot.is_orderable():
                    raise ProductNotFoundException(pid)
                if snapshot.stock < qty:
                    raise InsufficientStockException(pid, qty, snapshot.stock)
                snapshots[pid] = snapshot
        return snapshots

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def _can_access(order: Order, actor: Actor) -> bool:
        return actor.is_operator or order.is_owned_by(actor.id)

    async def get_order(self, order_id: str, actor: Actor) -> OrderDTO:
        """获取订单（非管理员只能查看自己的订单）"""
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None or not self._can_access(order, actor):
            raise OrderNotFoundException(order_id)
        return OrderDTO.from_entity(order)

    async def list_orders(
        self,
        actor: Actor,
        *,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[OrderDTO], int]:
        """获取当前用户的订单列表（带总数）"""
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_by_owner(actor.id, skip, limit, status)
            total = await uow.order_repository.count_by_owner(actor.id, status)
        return [OrderDTO.from_entity(o) for o in orders], int(total)

    async def list_all_orders(
        self,
        actor: Actor,
        *,
        status: Optional[OrderStatus] = None,
        owner_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[OrderDTO], int]:
        """管理员订单列表"""
        if not actor.is_operator:
            raise ForbiddenException("Only operators can list all orders")
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_all(skip, limit, status, owner_id)
            total = await uow.order_repository.count_all(status, owner_id)
        return [OrderDTO.from_entity(o) for o in orders], int(total)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def cancel_order(self, order_id: str, actor: Actor) -> OrderDTO:
        """
        Cancel a PENDING or PAID order and release its reserved stock.

        The status update is guarded on the status that was read, so a
        concurrent confirmation or a second cancel makes this call fail with
        INVALID_STATUS_TRANSITION instead of releasing stock twice.
        """
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None or not self._can_access(order, actor):
                raise OrderNotFoundException(order_id)

            ensure_transition(order.status, OrderStatus.CANCELLED, order_id)
            needs_refund = requires_refund(order.status, OrderStatus.CANCELLED)

            applied = await uow.order_repository.transition(
                order_id,
                [order.status],
                OrderStatus.CANCELLED,
                refund_required=needs_refund,
            )
            if not applied:
                current = await uow.order_repository.get_by_id(order_id)
                raise InvalidStatusTransitionException(
                    order_id, current.status.value if current else order.status.value, OrderStatus.CANCELLED.value
                )

            for item in order.items:
                await uow.stock_ledger.release(item.product_id, item.quantity)

            cancelled = await uow.order_repository.get_by_id(order_id)

        logger.info(
            "order_cancelled",
            order_id=order_id,
            actor_id=actor.id,
            previous_status=order.status.value,
            refund_required=needs_refund,
            released={item.product_id: item.quantity for item in order.items},
        )

        if needs_refund:
            cancelled = await self._refund_after_cancel(order_id) or cancelled
        return OrderDTO.from_entity(cancelled)

    async def _refund_after_cancel(self, order_id: str) -> Optional[Order]:
        if not self._auto_refund or self._refunds is None:
            logger.info("order_refund_flagged_for_operator", order_id=order_id)
            return None
        try:
            await self._refunds.refund_cancelled_order(order_id)
        except PaymentGatewayException as exc:
            # cancellation is committed; the refund sweep picks the order up again
            logger.error("order_refund_deferred", order_id=order_id, error=exc.message)
            return None
        async with self._uow_factory(readonly=True) as uow:
            return await uow.order_repository.get_by_id(order_id)

    async def advance_status(self, order_id: str, new_status: OrderStatus, actor: Actor) -> OrderDTO:
        """Operator-driven transitions: PAID -> SHIPPED -> DELIVERED, or cancellation."""
        if not actor.is_operator:
            raise ForbiddenException("Only operators can change order status")
        if new_status is OrderStatus.CANCELLED:
            return await self.cancel_order(order_id, actor)

        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            if new_status not in OPERATOR_TARGETS:
                raise InvalidStatusTransitionException(order_id, order.status.value, new_status.value)
            ensure_transition(order.status, new_status, order_id)

            applied = await uow.order_repository.transition(order_id, [order.status], new_status)
            if not applied:
                raise InvalidStatusTransitionException(order_id, order.status.value, new_status.value)
            updated = await uow.order_repository.get_by_id(order_id)

        logger.info(
            "order_status_advanced",
            order_id=order_id,
            actor_id=actor.id,
            from_status=order.status.value,
            to_status=new_status.value,
        )
        return OrderDTO.from_entity(updated)
