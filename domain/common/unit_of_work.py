"""Unit of Work 抽象定义"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.catalog.repository import CatalogProvider, StockLedger
from domain.order.repository import OrderRepository
from domain.payment.repository import PaymentRepository


class AbstractUnitOfWork(ABC):
    """
    应用层事务边界控制抽象

    Stock reservations, order rows and payment rows changed through one unit
    commit or roll back together; leaving the context with an exception rolls
    back. ``readonly`` units are for the lookups services do before talking to
    the payment gateway and never commit anything.
    """

    catalog: CatalogProvider
    stock_ledger: StockLedger
    order_repository: OrderRepository
    payment_repository: PaymentRepository

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly

    @property
    def readonly(self) -> bool:
        return self._readonly

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        elif not self._readonly and not self._committed:
            await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...
