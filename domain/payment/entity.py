"""
支付领域实体 - 支付聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "pending"         # 待支付 (gateway intent created)
    COMPLETED = "completed"     # 支付成功
    FAILED = "failed"           # 支付失败
    REFUNDED = "refunded"       # 已退款


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Payment:
    """
    支付聚合根

    业务规则：
    1. 每个订单最多一笔非失败的支付
    2. amount == Order.total
    3. 货币代码必须是3位字母
    """

    id: Optional[int]
    order_id: str
    amount: Decimal
    currency: str
    external_transaction_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str = "card"
    client_secret: Optional[str] = None
    refund_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    def __post_init__(self):
        """初始化后验证"""
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be positive: {self.amount}",
                field="amount",
            )
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Invalid currency code: {self.currency}",
                field="currency",
            )
        self.currency = self.currency.upper()
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)
        self.refunded_at = _ensure_utc(self.refunded_at)

    @classmethod
    def start(
        cls,
        *,
        order_id: str,
        amount: Decimal,
        currency: str,
        external_transaction_id: str,
        client_secret: Optional[str],
        payment_method: str = "card",
    ) -> "Payment":
        now = datetime.now(timezone.utc)
        return cls(
            id=None,
            order_id=order_id,
            amount=amount,
            currency=currency,
            external_transaction_id=external_transaction_id,
            status=PaymentStatus.PENDING,
            payment_method=payment_method,
            client_secret=client_secret,
            created_at=now,
            updated_at=now,
        )
