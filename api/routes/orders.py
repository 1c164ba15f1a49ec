"""
订单API路由 - FastAPI表现层

Thin layer: parse input, resolve the caller, delegate to the application
services and wrap results in the standard response envelope.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_current_actor, get_order_service, get_payment_service
from application.dtos.orders import (
    Actor,
    CreateOrderRequest,
    OrderDTO,
    PaginationParams,
    UpdateStatusRequest,
)
from application.dtos.payments import (
    ConfirmPaymentRequest,
    InitiatePaymentRequest,
    PaymentInitiation,
)
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentLifecycleService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.order.entity import OrderStatus

router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
)


def _pagination(
    page: int = Query(1, ge=1, description="页码，从1开始"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="每页大小"),
) -> PaginationParams:
    return PaginationParams(page=page, size=size)


@router.post(
    "",
    summary="创建订单",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[OrderDTO],
)
async def create_order(
    payload: CreateOrderRequest,
    actor: Actor = Depends(get_current_actor),
    service: OrderApplicationService = Depends(get_order_service),
):
    """
    Create an order from cart lines.

    - Prices are frozen at creation time
    - Stock for every line is reserved atomically with the order
    """
    order = await service.create_order(actor.id, payload.items)
    return success_response(data=order, message="Order created")


@router.get(
    "",
    summary="我的订单列表",
    response_model=ApiResponse[PaginatedData[OrderDTO]],
)
async def list_orders(
    params: PaginationParams = Depends(_pagination),
    order_status: Optional[OrderStatus] = Query(None, alias="status", description="按状态筛选"),
    actor: Actor = Depends(get_current_actor),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders, total = await service.list_orders(
        actor, status=order_status, skip=params.skip, limit=params.limit
    )
    return paginated_response(items=orders, total=total, page=params.page, size=params.size)


@router.get(
    "/admin/all",
    summary="全部订单（管理员）",
    response_model=ApiResponse[PaginatedData[OrderDTO]],
)
async def list_all_orders(
    params: PaginationParams = Depends(_pagination),
    order_status: Optional[OrderStatus] = Query(None, alias="status", description="按状态筛选"),
    owner_id: Optional[str] = Query(None, description="按下单用户筛选"),
    actor: Actor = Depends(get_current_actor),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders, total = await service.list_all_orders(
        actor, status=order_status, owner_id=owner_id, skip=params.skip, limit=params.limit
    )
    return paginated_response(items=orders, total=total, page=params.page, size=params.size)


@router.put(
    "/admin/{order_id}/status",
    summary="推进订单状态（管理员）",
    response_model=ApiResponse[OrderDTO],
)
async def advance_status(
    order_id: str,
    payload: UpdateStatusRequest,
    actor: Actor = Depends(get_current_actor),
    service: OrderApplicationService = Depends(get_order_service),
):
    """PAID -> SHIPPED -> DELIVERED; CANCELLED is handled like a cancellation."""
    order = await service.advance_status(order_id, payload.status, actor)
    return success_response(data=order, message="Order status updated")


@router.get("/{order_id}", summary="订单详情", response_model=ApiResponse[OrderDTO])
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.get_order(order_id, actor)
    return success_response(data=order)


@router.post(
    "/{order_id}/payment",
    summary="发起支付",
    response_model=ApiResponse[PaymentInitiation],
)
async def initiate_payment(
    order_id: str,
    payload: Optional[InitiatePaymentRequest] = None,
    actor: Actor = Depends(get_current_actor),
    service: PaymentLifecycleService = Depends(get_payment_service),
):
    """
    Start paying a PENDING order.

    Calling again while the payment is still pending returns the same
    client secret.
    """
    method = payload.payment_method if payload else "card"
    initiation = await service.initiate_payment(order_id, actor, payment_method=method)
    return success_response(data=initiation, message="Payment initiated")


@router.post(
    "/{order_id}/confirm-payment",
    summary="确认支付",
    response_model=ApiResponse[OrderDTO],
)
async def confirm_payment(
    order_id: str,
    payload: ConfirmPaymentRequest,
    actor: Actor = Depends(get_current_actor),
    service: PaymentLifecycleService = Depends(get_payment_service),
):
    order = await service.confirm_payment(order_id, payload.payment_intent_id, actor)
    return success_response(data=order, message="Payment confirmed")


@router.delete("/{order_id}", summary="取消订单", response_model=ApiResponse[OrderDTO])
async def cancel_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.cancel_order(order_id, actor)
    return success_response(data=order, message="Order cancelled")
