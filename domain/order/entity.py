"""
订单领域实体 - Order aggregate root and its line items.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from domain.common.exceptions import DomainValidationException


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "PENDING"
    PAID = "PAID"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class OrderItem:
    """
    订单行 - value object.

    unit_price is the catalog price captured when the order was created and is
    never re-read from the live product afterwards.
    """

    product_id: str
    quantity: int
    unit_price: Decimal
    id: Optional[int] = None

    def __post_init__(self):
        if self.quantity < 1:
            raise DomainValidationException(
                f"Quantity must be at least 1: {self.quantity}",
                field="quantity",
            )
        if self.unit_price < 0:
            raise DomainValidationException(
                f"Unit price cannot be negative: {self.unit_price}",
                field="unit_price",
            )

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def compute_total(items: Iterable[OrderItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))


@dataclass
class Order:
    """
    订单聚合根

    业务规则：
    1. total == Σ(quantity × unit_price), fixed at creation
    2. 至少包含一个订单行
    3. 状态转换必须遵循状态机 (domain.order.state_machine)
    """

    id: Optional[str]
    owner_id: str
    items: list[OrderItem]
    total: Decimal
    currency: str
    status: OrderStatus = OrderStatus.PENDING
    refund_required: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    payment: Optional["PaymentSummary"] = None

    def __post_init__(self):
        if not self.items:
            raise DomainValidationException("Order must contain at least one item", field="items")
        expected = compute_total(self.items)
        if self.total != expected:
            raise DomainValidationException(
                f"Order total {self.total} does not match items total {expected}",
                field="total",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    @classmethod
    def place(cls, owner_id: str, items: list[OrderItem], currency: str) -> "Order":
        """Build a new PENDING order; the total is derived from the price snapshots."""
        now = datetime.now(timezone.utc)
        return cls(
            id=None,
            owner_id=owner_id,
            items=list(items),
            total=compute_total(items),
            currency=currency.upper(),
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def is_owned_by(self, actor_id: str) -> bool:
        return self.owner_id == actor_id


@dataclass
class PaymentSummary:
    """Read-side view of the order's latest payment."""
    id: int
    status: str
    amount: Decimal
    currency: str
    payment_method: str
    created_at: Optional[datetime] = field(default=None)
