"""
支付仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import ActivePaymentExistsException
from domain.payment.entity import Payment, PaymentStatus
from domain.payment.repository import PaymentRepository
from infrastructure.models.payment import PaymentModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        """将数据库模型转换为领域实体"""
        return Payment(
            id=model.id,
            order_id=model.order_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            external_transaction_id=model.external_transaction_id,
            status=PaymentStatus(model.status),
            payment_method=model.payment_method,
            client_secret=model.client_secret,
            refund_id=model.refund_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
            refunded_at=model.refunded_at,
        )

    def _to_model(self, entity: Payment) -> PaymentModel:
        """将领域实体转换为数据库模型"""
        return PaymentModel(
            id=entity.id,
            order_id=entity.order_id,
            amount=entity.amount,
            currency=entity.currency,
            payment_method=entity.payment_method,
            external_transaction_id=entity.external_transaction_id,
            client_secret=entity.client_secret,
            refund_id=entity.refund_id,
            status=entity.status.value,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            paid_at=entity.paid_at,
            refunded_at=entity.refunded_at,
        )

    def _select(self):
        return select(PaymentModel).execution_options(populate_existing=True)

    async def create(self, payment: Payment) -> Payment:
        """创建支付记录"""
        try:
            db_payment = self._to_model(payment)
            self.session.add(db_payment)
            await self.session.flush()
        except IntegrityError as e:
            msg = str(e).lower()
            if "uq_payments_active_order" in msg or "payments.order_id" in msg:
                logger.warning("payment_create_conflict", order_id=payment.order_id)
                raise ActivePaymentExistsException(payment.order_id) from e
            raise
        logger.info(
            "payment_created",
            payment_id=db_payment.id,
            order_id=db_payment.order_id,
            external_transaction_id=db_payment.external_transaction_id,
        )
        return self._to_entity(db_payment)

    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        result = await self.session.execute(self._select().where(PaymentModel.id == payment_id))
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def get_active_by_order(self, order_id: str) -> Optional[Payment]:
        result = await self.session.execute(
            self._select()
            .where(
                PaymentModel.order_id == order_id,
                PaymentModel.status != PaymentStatus.FAILED.value,
            )
            .order_by(PaymentModel.id.desc())
            .limit(1)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_external_id(self, external_transaction_id: str) -> Optional[Payment]:
        result = await self.session.execute(
            self._select().where(PaymentModel.external_transaction_id == external_transaction_id)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def transition(
        self,
        payment_id: int,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        *,
        refund_id: Optional[str] = None,
    ) -> bool:
        now = datetime.now(timezone.utc)
        values: dict = {"status": to_status.value, "updated_at": now}
        if to_status is PaymentStatus.COMPLETED:
            values["paid_at"] = now
        if to_status is PaymentStatus.REFUNDED:
            values["refunded_at"] = now
            values["refund_id"] = refund_id
        result = await self.session.execute(
            update(PaymentModel)
            .where(PaymentModel.id == payment_id, PaymentModel.status == from_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1
        if changed:
            logger.info(
                "payment_updated",
                payment_id=payment_id,
                from_status=from_status.value,
                status=to_status.value,
            )
        return changed
