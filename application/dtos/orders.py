"""
Order DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from core.config import settings
from domain.order.entity import Order, OrderStatus


class CartLine(BaseModel):
    product_id: str = Field(min_length=1, max_length=36)
    # Range is enforced by the application service so every entry point
    # gets the same EMPTY_CART / INVALID_QUANTITY errors.
    quantity: int


class CreateOrderRequest(BaseModel):
    items: list[CartLine] = Field(default_factory=list)


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


class OrderItemDTO(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class PaymentSummaryDTO(BaseModel):
    id: int
    status: str
    amount: Decimal
    currency: str
    payment_method: str


class OrderDTO(BaseModel):
    id: str
    owner_id: str
    status: OrderStatus
    total: Decimal
    currency: str
    refund_required: bool = False
    items: list[OrderItemDTO]
    payment: Optional[PaymentSummaryDTO] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, order: Order) -> "OrderDTO":
        payment = None
        if order.payment is not None:
            payment = PaymentSummaryDTO(
                id=order.payment.id,
                status=order.payment.status,
                amount=order.payment.amount,
                currency=order.payment.currency,
                payment_method=order.payment.payment_method,
            )
        return cls(
            id=order.id,
            owner_id=order.owner_id,
            status=order.status,
            total=order.total,
            currency=order.currency,
            refund_required=order.refund_required,
            items=[
                OrderItemDTO(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                )
                for item in order.items
            ],
            payment=payment,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class Actor(BaseModel):
    """The authenticated caller, as resolved by the upstream auth layer."""
    id: str
    role: str = "USER"

    @property
    def is_operator(self) -> bool:
        return self.role.upper() == "ADMIN"


class PaginationParams(BaseModel):
    """分页参数（页码/每页大小），自动派生 skip/limit"""
    page: int = Field(1, ge=1, description="页码，从1开始")
    size: int = Field(
        default=settings.DEFAULT_PAGE_SIZE,
        ge=1,
        le=settings.MAX_PAGE_SIZE,
        description="每页大小",
    )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size
