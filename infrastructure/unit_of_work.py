"""SQLAlchemy Unit of Work 实现

A write unit opens its transaction on entry and commits on a clean exit.
A readonly unit never begins one explicitly: its SELECTs run without holding
write locks and whatever the session touched is rolled back on exit.
"""
from __future__ import annotations

from typing import Optional, Callable

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.repositories.order_repository import SQLAlchemyOrderRepository
from infrastructure.repositories.payment_repository import SQLAlchemyPaymentRepository
from infrastructure.repositories.product_repository import SQLAlchemyCatalogProvider
from infrastructure.repositories.stock_ledger import SQLAlchemyStockLedger


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._owns_session = session is None
        self.session: Optional[AsyncSession] = session
        self._transaction: Optional[AsyncSessionTransaction] = None

    def _bind_repositories(self, session: Optional[AsyncSession]) -> None:
        if session is None:
            self.catalog = self.stock_ledger = None  # type: ignore[assignment]
            self.order_repository = self.payment_repository = None  # type: ignore[assignment]
            return
        self.catalog = SQLAlchemyCatalogProvider(session)
        self.stock_ledger = SQLAlchemyStockLedger(session)
        self.order_repository = SQLAlchemyOrderRepository(session)
        self.payment_repository = SQLAlchemyPaymentRepository(session)

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self._bind_repositories(self.session)
        if not self._readonly:
            self._transaction = await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
            if self._readonly:
                await self.rollback()
        finally:
            self._transaction = None
            self._bind_repositories(None)
            if self._owns_session and self.session is not None:
                await self.session.close()
                self.session = None

    async def commit(self) -> None:
        if self._readonly:
            raise RuntimeError("readonly unit of work cannot commit")
        if self.session is not None and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session is not None and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False


def make_uow_factory(session_factory: Callable[[], AsyncSession]):
    """Bind a session factory so services can open units of work with ``factory(readonly=...)``."""

    def _factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=session_factory, readonly=readonly)

    return _factory
