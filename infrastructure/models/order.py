"""
订单数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean,
    Index, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    所有业务规则都在 domain.order 中
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True, comment="下单用户ID")

    # 金额在创建时确定，之后不再修改
    total = Column(Numeric(precision=12, scale=2), nullable=False, comment="订单总额")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码 ISO-4217")

    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="订单状态: PENDING/PAID/SHIPPED/DELIVERED/CANCELLED",
    )
    refund_required = Column(
        Boolean, nullable=False, default=False, index=True,
        comment="已取消的已支付订单，等待网关退款",
    )

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间",
    )

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        lazy="selectin",
        order_by="OrderItemModel.id",
    )
    payments = relationship(
        "PaymentModel",
        back_populates="order",
        lazy="selectin",
        order_by="PaymentModel.id",
    )

    __table_args__ = (
        Index("ix_orders_owner_status", "owner_id", "status"),
    )

    def __repr__(self):
        return f"<OrderModel(id='{self.id}', owner_id='{self.owner_id}', total={self.total}, status='{self.status}')>"


class OrderItemModel(Base):
    """
    订单行数据库模型

    unit_price 为下单时的价格快照
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(precision=10, scale=2), nullable=False, comment="下单时单价")

    order = relationship("OrderModel", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )
