"""Domain error codes for the box office.

Services raise these; routers map them to HTTP responses. ``message`` is
always safe to show to a buyer or an operator.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    RECEIPT_REQUIRED = "RECEIPT_REQUIRED"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    TIER_NOT_FOUND = "TIER_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    BANK_NOT_FOUND = "BANK_NOT_FOUND"
    SOLD_OUT = "SOLD_OUT"
    QUANTITY_UNAVAILABLE = "QUANTITY_UNAVAILABLE"
    COUPON_UNAVAILABLE = "COUPON_UNAVAILABLE"
    DUPLICATE_COUPON = "DUPLICATE_COUPON"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NO_ACTIVE_BANK = "NO_ACTIVE_BANK"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Raised when buyer or admin input fails field validation."""

    def __init__(self, fields: dict[str, str]) -> None:
        super().__init__(code=ErrorCode.INVALID_INPUT, message="Invalid input")
        self.fields = fields


class ReceiptRequiredError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.RECEIPT_REQUIRED,
            message="Please upload the payment receipt",
        )


class NotFoundError(DomainError):
    """Raised when a referenced row does not exist or is not active."""

    def __init__(self, code: ErrorCode, entity_id: str) -> None:
        super().__init__(code=code, message=f"{code.value.split('_')[0].title()} not found")
        self.entity_id = entity_id


class SoldOutError(DomainError):
    def __init__(self, tier_id: str) -> None:
        super().__init__(code=ErrorCode.SOLD_OUT, message="This ticket tier is sold out")
        self.tier_id = tier_id


class QuantityUnavailableError(DomainError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            code=ErrorCode.QUANTITY_UNAVAILABLE,
            message=f"Only {available} tickets are available",
        )
        self.requested = requested
        self.available = available


class CouponUnavailableError(DomainError):
    """Raised when a coupon was redeemed by another order mid-checkout."""

    def __init__(self, code: str) -> None:
        super().__init__(
            code=ErrorCode.COUPON_UNAVAILABLE,
            message="Coupon is invalid or has already been used",
        )
        self.coupon_code = code


class DuplicateCouponError(DomainError):
    def __init__(self, code: str) -> None:
        super().__init__(code=ErrorCode.DUPLICATE_COUPON, message="This code already exists")
        self.coupon_code = code


class InvalidTransitionError(DomainError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=f"Cannot move an order from {current} to {target}",
        )
        self.current = current
        self.target = target


class NoActiveBankError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NO_ACTIVE_BANK,
            message="Bank details are not available",
        )


class UploadFailedError(DomainError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.UPLOAD_FAILED,
            message="Something went wrong while placing the order. Please try again.",
        )


class StoreUnavailableError(DomainError):
    """Raised when the data store rejects or fails a call."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            code=ErrorCode.STORE_UNAVAILABLE,
            message="The service is temporarily unavailable. Please try again.",
        )
        self.operation = operation
