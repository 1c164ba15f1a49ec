"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.order.entity import Order, OrderItem, OrderStatus, PaymentSummary
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel, OrderItemModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        items = [
            OrderItem(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=Decimal(str(item.unit_price)),
            )
            for item in model.items
        ]
        payment = None
        if model.payments:
            latest = model.payments[-1]
            payment = PaymentSummary(
                id=latest.id,
                status=latest.status,
                amount=Decimal(str(latest.amount)),
                currency=latest.currency,
                payment_method=latest.payment_method,
                created_at=latest.created_at,
            )
        return Order(
            id=model.id,
            owner_id=model.owner_id,
            items=items,
            total=Decimal(str(model.total)),
            currency=model.currency,
            status=OrderStatus(model.status),
            refund_required=bool(model.refund_required),
            created_at=model.created_at,
            updated_at=model.updated_at,
            payment=payment,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        """将领域实体转换为数据库模型"""
        return OrderModel(
            id=entity.id or str(uuid.uuid4()),
            owner_id=entity.owner_id,
            total=entity.total,
            currency=entity.currency,
            status=entity.status.value,
            refund_required=entity.refund_required,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
            items=[
                OrderItemModel(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in entity.items
            ],
            payments=[],
        )

    def _select_orders(self):
        # populate_existing: conditional UPDATEs bypass the identity map
        return select(OrderModel).execution_options(populate_existing=True)

    async def create(self, order: Order) -> Order:
        """创建订单及订单行"""
        db_order = self._to_model(order)
        self.session.add(db_order)
        await self.session.flush()
        logger.info(
            "order_persisted",
            order_id=db_order.id,
            owner_id=db_order.owner_id,
            items=len(db_order.items),
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        """根据ID获取订单"""
        result = await self.session.execute(
            self._select_orders().where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def list_by_owner(
        self,
        owner_id: str,
        skip: int = 0,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        return await self.list_all(skip=skip, limit=limit, status=status, owner_id=owner_id)

    async def count_by_owner(self, owner_id: str, status: Optional[OrderStatus] = None) -> int:
        return await self.count_all(status=status, owner_id=owner_id)

    async def list_all(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[OrderStatus] = None,
        owner_id: Optional[str] = None,
    ) -> List[Order]:
        query = self._select_orders()
        if status:
            query = query.where(OrderModel.status == status.value)
        if owner_id:
            query = query.where(OrderModel.owner_id == owner_id)
        # 默认按创建时间倒序，再按ID倒序，确保分页稳定
        query = query.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).offset(skip).limit(limit)

        result = await self.session.execute(query)
        return [self._to_entity(o) for o in result.scalars().all()]

    async def count_all(self, status: Optional[OrderStatus] = None, owner_id: Optional[str] = None) -> int:
        query = select(func.count(OrderModel.id))
        if status:
            query = query.where(OrderModel.status == status.value)
        if owner_id:
            query = query.where(OrderModel.owner_id == owner_id)
        result = await self.session.execute(query)
        return int(result.scalar_one())

    async def transition(
        self,
        order_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        *,
        refund_required: Optional[bool] = None,
    ) -> bool:
        sources = [s.value for s in from_statuses]
        values = {"status": to_status.value, "updated_at": datetime.now(timezone.utc)}
        if refund_required is not None:
            values["refund_required"] = refund_required
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1
        logger.debug(
            "order_transition_attempted",
            order_id=order_id,
            from_statuses=sources,
            to_status=to_status.value,
            applied=changed,
        )
        return changed

    async def list_refund_required(self, limit: int = 100) -> List[Order]:
        result = await self.session.execute(
            self._select_orders()
            .where(
                OrderModel.refund_required.is_(True),
                OrderModel.status == OrderStatus.CANCELLED.value,
            )
            .order_by(OrderModel.updated_at.asc())
            .limit(limit)
        )
        return [self._to_entity(o) for o in result.scalars().all()]

    async def clear_refund_required(self, order_id: str) -> bool:
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.refund_required.is_(True))
            .values(refund_required=False, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
