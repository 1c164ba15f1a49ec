"""
Shared business codes used across layers (Domain/Core/API).

This package exposes BusinessCode at `shared.codes` and keeps
payment-specific codes under `shared.codes.payment_codes`.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003
    EMPTY_CART = 10004
    INVALID_QUANTITY = 10005

    # Business errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # Generic resource not found
    PRODUCT_NOT_FOUND = 20101
    ORDER_NOT_FOUND = 20102
    PAYMENT_NOT_FOUND = 20103

    # Conflicts (21xxx)
    CONFLICT = 21000
    INSUFFICIENT_STOCK = 21001
    INVALID_STATUS_TRANSITION = 21002
    ORDER_NOT_PAYABLE = 21003
    PAYMENT_ALREADY_COMPLETED = 21004
    PAYMENT_FAILED = 21005

    # Authorization errors (3xxxx)
    PERMISSION_ERROR = 30000
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003


__all__ = ["BusinessCode"]
