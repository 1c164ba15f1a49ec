"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Index, ForeignKey, text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import Base


class PaymentModel(Base):
    """
    支付数据库模型

    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)

    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True, comment="订单ID")

    amount = Column(Numeric(precision=12, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="USD", comment="货币代码 ISO-4217")
    payment_method = Column(String(30), nullable=False, default="card", comment="支付方式")

    # 支付网关引用
    external_transaction_id = Column(String(200), nullable=False, unique=True, comment="网关支付ID")
    client_secret = Column(String(500), nullable=True, comment="客户端密钥（用于前端调用）")
    refund_id = Column(String(200), nullable=True, comment="网关退款ID")

    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="支付状态: pending/completed/failed/refunded",
    )

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间",
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间",
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="退款时间")

    order = relationship("OrderModel", back_populates="payments")

    __table_args__ = (
        # 每个订单最多一笔非失败支付
        Index(
            "uq_payments_active_order",
            "order_id",
            unique=True,
            postgresql_where=text("status <> 'failed'"),
            sqlite_where=text("status <> 'failed'"),
        ),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, order_id='{self.order_id}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
