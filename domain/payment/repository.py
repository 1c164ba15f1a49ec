"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Payment, PaymentStatus


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """
        创建支付记录

        Raises ActivePaymentExistsException when the order already has a
        non-failed payment (enforced by the store, not just by a prior read).
        """
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        pass

    @abstractmethod
    async def get_active_by_order(self, order_id: str) -> Optional[Payment]:
        """The order's non-failed payment, if any"""
        pass

    @abstractmethod
    async def get_by_external_id(self, external_transaction_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def transition(
        self,
        payment_id: int,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        *,
        refund_id: Optional[str] = None,
    ) -> bool:
        """Compare-and-set the payment status; True when exactly one row changed"""
        pass
