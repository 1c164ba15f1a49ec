"""
Catalog read model as seen by the order engine.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ProductSnapshot:
    """Point-in-time view of a product's price, stock and active flag."""

    id: str
    name: str
    price: Decimal
    stock: int
    is_active: bool

    def is_orderable(self) -> bool:
        return self.is_active
