"""
API依赖项 - 调用方身份与应用服务装配

Authentication happens upstream (gateway / auth service); requests arrive
with the resolved identity in ``X-User-Id`` and ``X-User-Role``.
"""
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from application.dtos.orders import Actor
from application.ports.payment_gateway import PaymentGateway
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentLifecycleService
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal
from infrastructure.external.payments import get_payment_gateway
from infrastructure.unit_of_work import make_uow_factory


async def get_current_actor(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_role: str = Header(default="USER", alias="X-User-Role"),
) -> Actor:
    """从请求头解析调用方身份"""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return Actor(id=x_user_id, role=x_user_role.upper())


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return make_uow_factory(AsyncSessionLocal)


def get_gateway(request: Request) -> PaymentGateway:
    """进程内共享的支付网关（在 lifespan 中创建，缺失时惰性创建）"""
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        gateway = get_payment_gateway()
        request.app.state.payment_gateway = gateway
    return gateway


def get_payment_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
) -> PaymentLifecycleService:
    return PaymentLifecycleService(uow_factory, gateway)


def get_order_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    payments: PaymentLifecycleService = Depends(get_payment_service),
) -> OrderApplicationService:
    return OrderApplicationService(uow_factory, refunds=payments)
