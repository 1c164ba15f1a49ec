"""
订单仓储接口 - Order persistence contract.
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .entity import Order, OrderStatus


class OrderRepository(ABC):
    """订单仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Persist the order and its items; returns the order with ids assigned"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """Load the order with its items and latest payment summary"""
        pass

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: str,
        skip: int = 0,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        """List one customer's orders, newest first"""
        pass

    @abstractmethod
    async def count_by_owner(self, owner_id: str, status: Optional[OrderStatus] = None) -> int:
        pass

    @abstractmethod
    async def list_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
        owner_id: Optional[str] = None,
    ) -> List[Order]:
        """Operator listing across all customers, newest first"""
        pass

    @abstractmethod
    async def count_all(self, status: Optional[OrderStatus] = None, owner_id: Optional[str] = None) -> int:
        pass

    @abstractmethod
    async def transition(
        self,
        order_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        *,
        refund_required: Optional[bool] = None,
    ) -> bool:
        """
        Compare-and-set the order status.

        Applies only when the stored status is one of ``from_statuses``;
        returns whether exactly one row changed.
        """
        pass

    @abstractmethod
    async def list_refund_required(self, limit: int = 100) -> List[Order]:
        """Cancelled orders still waiting for a gateway refund"""
        pass

    @abstractmethod
    async def clear_refund_required(self, order_id: str) -> bool:
        pass
