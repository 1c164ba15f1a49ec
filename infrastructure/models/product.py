"""
商品数据库模型

The catalog service owns this table; the order engine only reads it and moves
the stock counter through the stock ledger.
"""
from sqlalchemy import Column, String, Numeric, Integer, Boolean, DateTime, CheckConstraint
from datetime import datetime, timezone

from .base import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False, comment="商品名称")
    price = Column(Numeric(precision=10, scale=2), nullable=False, comment="当前售价")
    stock = Column(Integer, nullable=False, default=0, comment="库存")
    is_active = Column(Boolean, nullable=False, default=True, index=True, comment="是否上架")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    def __repr__(self):
        return f"<ProductModel(id='{self.id}', price={self.price}, stock={self.stock})>"
