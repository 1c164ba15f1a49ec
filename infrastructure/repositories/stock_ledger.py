"""
库存账本 - conditional stock updates against the products table.

Both operations run inside the caller's transaction, so a reservation made
while building an order disappears if that order is rolled back.
"""
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.catalog.repository import StockLedger
from domain.common.exceptions import DomainValidationException
from infrastructure.models.product import ProductModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def _check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise DomainValidationException(
            f"Stock quantity must be at least 1: {quantity}",
            field="quantity",
        )


class SQLAlchemyStockLedger(StockLedger):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(self, product_id: str, quantity: int) -> bool:
        _check_quantity(quantity)
        # UPDATE ... SET stock = stock - :q WHERE id = :id AND is_active AND stock >= :q
        # a product retired after the catalog read is not sold
        result = await self.session.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.is_active.is_(True),
                ProductModel.stock >= quantity,
            )
            .values(stock=ProductModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        reserved = result.rowcount == 1
        if reserved:
            logger.debug("stock_reserved", product_id=product_id, quantity=quantity)
        else:
            logger.info("stock_reservation_failed", product_id=product_id, quantity=quantity)
        return reserved

    async def release(self, product_id: str, quantity: int) -> None:
        _check_quantity(quantity)
        result = await self.session.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock=ProductModel.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            # order_items reference products, so this only happens on a broken catalog
            logger.warning("stock_release_missing_product", product_id=product_id, quantity=quantity)
            return
        logger.debug("stock_released", product_id=product_id, quantity=quantity)
