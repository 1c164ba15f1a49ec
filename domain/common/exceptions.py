"""Business exceptions shared by the domain, application and infrastructure layers.

The core layer only maps these to HTTP responses; nothing here imports core.

Taxonomy:
- DomainValidationException: rejected input, raised before any side effect
- NotFoundException: unknown product/order/payment
- ConflictException: insufficient stock, illegal transitions, duplicate payment;
  always raised inside (or before) a Unit of Work so the transaction rolls back
- ExternalServiceException: payment gateway unreachable or failing; safe to retry
"""
from __future__ import annotations

from typing import Optional

from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        code: int = BusinessCode.PARAM_VALIDATION_ERROR,
        error_type: str = "ValidationError",
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
        )


class NotFoundException(BusinessException):
    def __init__(self, message: str, *, code: int = BusinessCode.NOT_FOUND,
                 error_type: str = "NotFound", details: dict | None = None):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class ConflictException(BusinessException):
    def __init__(self, message: str, *, code: int = BusinessCode.CONFLICT,
                 error_type: str = "Conflict", details: dict | None = None):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class ExternalServiceException(BusinessException):
    def __init__(self, message: str, *, code: int = BusinessCode.SERVICE_UNAVAILABLE,
                 error_type: str = "ExternalServiceError", details: dict | None = None):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class ForbiddenException(BusinessException):
    def __init__(self, message: str = "Operation not permitted"):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
        )


# --- cart / order creation -------------------------------------------------


class EmptyCartException(DomainValidationException):
    def __init__(self):
        super().__init__(
            "Cart cannot be empty",
            code=BusinessCode.EMPTY_CART,
            error_type="EMPTY_CART",
            field="items",
        )


class InvalidQuantityException(DomainValidationException):
    def __init__(self, product_id: str, quantity: int):
        super().__init__(
            f"Quantity must be at least 1 (got {quantity})",
            code=BusinessCode.INVALID_QUANTITY,
            error_type="INVALID_QUANTITY",
            field="quantity",
            details={"product_id": product_id, "quantity": quantity},
        )


class ProductNotFoundException(NotFoundException):
    def __init__(self, product_id: str):
        super().__init__(
            f"Product {product_id} not found or inactive",
            code=BusinessCode.PRODUCT_NOT_FOUND,
            error_type="PRODUCT_NOT_FOUND",
            details={"product_id": product_id},
        )


class InsufficientStockException(ConflictException):
    def __init__(self, product_id: str, requested: int, available: Optional[int] = None):
        details = {"product_id": product_id, "requested": requested}
        if available is not None:
            details["available"] = available
        super().__init__(
            f"Insufficient stock for product {product_id}",
            code=BusinessCode.INSUFFICIENT_STOCK,
            error_type="INSUFFICIENT_STOCK",
            details=details,
        )


# --- order lifecycle --------------------------------------------------------


class OrderNotFoundException(NotFoundException):
    def __init__(self, order_id: str):
        super().__init__(
            "Order not found",
            code=BusinessCode.ORDER_NOT_FOUND,
            error_type="ORDER_NOT_FOUND",
            details={"order_id": order_id},
        )


class InvalidStatusTransitionException(ConflictException):
    def __init__(self, order_id: str | None, current: str, target: str):
        super().__init__(
            f"Cannot change order status from {current} to {target}",
            code=BusinessCode.INVALID_STATUS_TRANSITION,
            error_type="INVALID_STATUS_TRANSITION",
            details={"order_id": order_id, "from": current, "to": target},
        )


# --- payments ---------------------------------------------------------------


class PaymentNotFoundException(NotFoundException):
    def __init__(self, identifier: str):
        super().__init__(
            f"Payment not found: {identifier}",
            code=BusinessCode.PAYMENT_NOT_FOUND,
            error_type="PAYMENT_NOT_FOUND",
            details={"identifier": identifier},
        )


class OrderNotPayableException(ConflictException):
    def __init__(self, order_id: str, status: str):
        super().__init__(
            f"Order {order_id} is {status} and cannot be paid",
            code=BusinessCode.ORDER_NOT_PAYABLE,
            error_type="ORDER_NOT_PAYABLE",
            details={"order_id": order_id, "status": status},
        )


class PaymentAlreadyCompletedException(ConflictException):
    def __init__(self, order_id: str):
        super().__init__(
            f"Order {order_id} already has a completed payment",
            code=BusinessCode.PAYMENT_ALREADY_COMPLETED,
            error_type="PAYMENT_ALREADY_COMPLETED",
            details={"order_id": order_id},
        )


class PaymentFailedException(ConflictException):
    def __init__(self, order_id: str, gateway_status: str):
        super().__init__(
            "Payment was not successful",
            code=BusinessCode.PAYMENT_FAILED,
            error_type="PAYMENT_FAILED",
            details={"order_id": order_id, "gateway_status": gateway_status},
        )


class PaymentGatewayException(ExternalServiceException):
    """Gateway unreachable or rejected the call; no local state was changed."""

    def __init__(self, message: str, *, provider: str, retryable: bool = True,
                 details: Optional[dict] = None, code: Optional[int] = None):
        full_details = {"provider": provider, "retryable": retryable}
        if details:
            full_details.update(details)
        self.provider = provider
        self.retryable = retryable
        super().__init__(
            message,
            code=code or (PaymentCode.PROVIDER_RECOVERABLE if retryable else PaymentCode.PROVIDER_ERROR),
            error_type="PAYMENT_GATEWAY_ERROR",
            details=full_details,
        )


class ActivePaymentExistsException(ConflictException):
    def __init__(self, order_id: str):
        super().__init__(
            f"Order {order_id} already has an active payment",
            code=BusinessCode.CONFLICT,
            error_type="DUPLICATE_PAYMENT",
            details={"order_id": order_id},
        )
