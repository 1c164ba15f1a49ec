"""
Catalog provider and stock ledger contracts.

The catalog is owned elsewhere; the order engine only reads snapshots and
changes stock through the ledger.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import ProductSnapshot


class CatalogProvider(ABC):
    """Read-only product access"""

    @abstractmethod
    async def get_snapshot(self, product_id: str) -> Optional[ProductSnapshot]:
        """Return the current snapshot, or None if the product does not exist"""
        pass


class StockLedger(ABC):
    """
    Race-safe stock counter.

    reserve() is the only way stock is ever reduced: a single conditional
    decrement that succeeds only when enough units remain, so stock can never
    go negative regardless of how many callers run concurrently.
    """

    @abstractmethod
    async def reserve(self, product_id: str, quantity: int) -> bool:
        """Decrement stock by quantity if stock >= quantity; True when applied"""
        pass

    @abstractmethod
    async def release(self, product_id: str, quantity: int) -> None:
        """Return previously reserved units. Callers must release a reservation once."""
        pass
