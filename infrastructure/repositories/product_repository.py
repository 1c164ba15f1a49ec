"""
商品快照读取 - catalog provider backed by the products table.
"""
from typing import Optional
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.catalog.entity import ProductSnapshot
from domain.catalog.repository import CatalogProvider
from infrastructure.models.product import ProductModel


class SQLAlchemyCatalogProvider(CatalogProvider):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_snapshot(self, product_id: str) -> Optional[ProductSnapshot]:
        result = await self.session.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return ProductSnapshot(
            id=model.id,
            name=model.name,
            price=Decimal(str(model.price)),
            stock=int(model.stock),
            is_active=bool(model.is_active),
        )
