"""Checkout service: turns a tier selection and a transfer receipt into an order.

Order creation runs as a sequence of independent store calls. Every step
after the receipt upload registers an undo action; if a later step fails
the undo actions run in reverse so the order, its attendees, the coupon
redemption and the inventory reservation persist together or not at all.
"""
from __future__ import annotations

import asyncio
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random

from boxoffice.errors import (
    DomainError,
    CouponUnavailableError,
    ErrorCode,
    NoActiveBankError,
    NotFoundError,
    QuantityUnavailableError,
    ReceiptRequiredError,
    SoldOutError,
    StoreUnavailableError,
    UploadFailedError,
    ValidationError,
)
from boxoffice.models.bank import Bank
from boxoffice.models.event import Event, TicketTier
from boxoffice.models.order import Order, OrderStatus
from boxoffice.services.coupons import CouponCheck, CouponService
from boxoffice.services.pricing import PriceBreakdown, compute_price, current_rate
from boxoffice.services.store import TicketStore
from boxoffice.utils.logger import logger

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
RESERVE_ATTEMPTS = int(os.getenv("RESERVE_ATTEMPTS", "5"))


class CheckoutRequest(BaseModel):
    event_id: str
    tier_id: str
    quantity: int = Field(1, ge=1)
    buyer_email: str
    buyer_name: str
    buyer_surname: str
    coupon_code: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)

    @field_validator("buyer_email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip()
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("buyer_name", "buyer_surname")
    @classmethod
    def _name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Must be at least 2 characters")
        return value

    @field_validator("attendees")
    @classmethod
    def _attendees(cls, value: List[str]) -> List[str]:
        return [name.strip() for name in value if name and name.strip()]

    @classmethod
    def parse(cls, **data: Any) -> "CheckoutRequest":
        """Build a request, turning pydantic errors into a field-keyed ValidationError."""
        try:
            request = cls(**data)
        except PydanticValidationError as exc:
            fields = {}
            for err in exc.errors():
                field = str(err["loc"][0]) if err["loc"] else "__all__"
                fields.setdefault(field, err["msg"].removeprefix("Value error, "))
            raise ValidationError(fields) from exc
        if len(request.attendees) > request.quantity - 1:
            raise ValidationError({"attendees": f"At most {request.quantity - 1} companion names"})
        return request


@dataclass
class ReceiptUpload:
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def extension(self) -> str:
        _, dot, ext = self.filename.rpartition(".")
        return ext.lower() if dot else "bin"

    @property
    def is_accepted_type(self) -> bool:
        if self.content_type and (
            self.content_type.startswith("image/") or self.content_type == "application/pdf"
        ):
            return True
        return self.extension in {"pdf", "png", "jpg", "jpeg", "gif", "webp", "heic"}


class CheckoutQuote(BaseModel):
    event_id: str
    tier_id: str
    tier_name: str
    coupon: CouponCheck
    price: PriceBreakdown
    rate_is_fallback: bool = False


class _ReservationConflict(Exception):
    """quantity_sold changed between read and conditional write."""


class _Undo:
    def __init__(self) -> None:
        self._steps: List[Tuple[str, Callable[[], Awaitable[Any]]]] = []

    def push(self, name: str, step: Callable[[], Awaitable[Any]]) -> None:
        self._steps.append((name, step))

    async def run(self, order_id: str) -> None:
        while self._steps:
            name, step = self._steps.pop()
            try:
                await step()
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Checkout rollback step failed",
                    extra={"order_id": order_id, "step": name, "error": str(exc)},
                )


class CheckoutService:
    """Validates and places orders against a ``TicketStore``."""

    def __init__(
        self,
        store: TicketStore,
        notify: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._store = store
        self._coupons = CouponService(store)
        self._notify = notify

    async def quote(self, event_id: str, tier_id: str, quantity: int, coupon_code: Optional[str] = None) -> CheckoutQuote:
        """Price a selection without persisting anything."""
        _, tier = await self._selection(event_id, tier_id)
        self._check_available(tier, quantity)
        coupon = await self._coupons.validate(coupon_code)
        rate = await current_rate(self._store)
        price = compute_price(tier.price_usd, quantity, coupon.discount_percent, rate.usd_to_tl)
        return CheckoutQuote(
            event_id=event_id,
            tier_id=tier.id,
            tier_name=tier.name,
            coupon=coupon,
            price=price,
            rate_is_fallback=rate.is_fallback,
        )

    async def payment_bank(self) -> Bank:
        """Return the account buyers transfer to: the oldest active bank."""
        try:
            banks = await self._store.list_active_banks()
        except DomainError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise StoreUnavailableError("list_active_banks") from exc
        if not banks:
            raise NoActiveBankError()
        return banks[0]

    async def create_order(self, request: CheckoutRequest, receipt: Optional[ReceiptUpload]) -> Order:
        """Place a ``pending`` order.

        Raises:
            ReceiptRequiredError: no receipt file was supplied.
            ValidationError: the receipt is not an image or PDF.
            NotFoundError: event or tier missing, inactive or mismatched.
            SoldOutError, QuantityUnavailableError: not enough tickets left.
            NoActiveBankError: no bank account is configured.
            CouponUnavailableError: the coupon was redeemed concurrently.
            UploadFailedError, StoreUnavailableError: a backend call failed.
        """
        if receipt is None or not receipt.content:
            raise ReceiptRequiredError()
        if not receipt.is_accepted_type:
            raise ValidationError({"receipt": "Receipt must be an image or a PDF"})

        event, tier = await self._selection(request.event_id, request.tier_id)
        self._check_available(tier, request.quantity)
        bank = await self.payment_bank()
        rate = await current_rate(self._store)
        coupon = await self._coupons.validate(request.coupon_code)
        price = compute_price(tier.price_usd, request.quantity, coupon.discount_percent, rate.usd_to_tl)

        order_id = str(uuid4())
        key = await self._upload(order_id, receipt)

        undo = _Undo()
        undo.push("remove_receipt", lambda: self._store.remove_receipt(key))
        try:
            await self._reserve(tier.id, request.quantity)
            undo.push("release_tickets", lambda: self._release(tier.id, request.quantity))

            # Undo steps keyed by order_id go on the stack before their write and
            # are no-ops when the write never landed.
            if coupon.coupon_id:
                coupon_id = coupon.coupon_id
                undo.push("release_coupon", lambda: self._store.release_coupon(coupon_id, order_id))
                redeemed = await self._store.redeem_coupon(
                    coupon_id, order_id, datetime.now(timezone.utc)
                )
                if not redeemed:
                    raise CouponUnavailableError(coupon.code)

            undo.push("delete_order", lambda: self._store.delete_order(order_id))
            order = await self._store.insert_order(
                {
                    "id": order_id,
                    "event_id": event.id,
                    "ticket_tier_id": tier.id,
                    "buyer_email": request.buyer_email,
                    "buyer_name": request.buyer_name,
                    "buyer_surname": request.buyer_surname,
                    "quantity": request.quantity,
                    "price_usd": str(price.final_price_usd),
                    "price_tl": str(price.final_price_tl),
                    "exchange_rate_used": str(rate.usd_to_tl),
                    "coupon_id": coupon.coupon_id,
                    "discount_applied": coupon.discount_percent,
                    "bank_id": bank.id,
                    "receipt_url": key,
                    "status": OrderStatus.PENDING.value,
                }
            )

            if request.attendees:
                undo.push("delete_attendees", lambda: self._store.delete_attendees(order_id))
                await self._store.insert_attendees(order_id, request.attendees)
        except DomainError:
            await undo.run(order_id)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Order creation failed", extra={"order_id": order_id, "error": str(exc)})
            await undo.run(order_id)
            raise StoreUnavailableError("create_order") from exc

        logger.info(
            "Order created",
            extra={"order_id": order.id, "tier_id": tier.id, "quantity": order.quantity},
        )
        await self._dispatch(order.id)
        return order

    async def _selection(self, event_id: str, tier_id: str) -> Tuple[Event, TicketTier]:
        event = await self._store.get_event(event_id)
        if event is None or not event.is_active:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, event_id)
        tier = await self._store.get_tier(tier_id)
        if tier is None or not tier.is_active or tier.event_id != event.id:
            raise NotFoundError(ErrorCode.TIER_NOT_FOUND, tier_id)
        return event, tier

    @staticmethod
    def _check_available(tier: TicketTier, quantity: int) -> None:
        if tier.sold_out:
            raise SoldOutError(tier.id)
        if quantity < 1 or quantity > tier.available:
            raise QuantityUnavailableError(quantity, tier.available)

    async def _upload(self, order_id: str, receipt: ReceiptUpload) -> str:
        key = f"{uuid4()}.{receipt.extension}"
        try:
            return await self._store.upload_receipt(key, receipt.content, receipt.content_type)
        except Exception as exc:  # noqa: BLE001
            logger.error("Receipt upload failed", extra={"order_id": order_id, "error": str(exc)})
            raise UploadFailedError() from exc

    async def _reserve(self, tier_id: str, quantity: int) -> None:
        try:
            await self._swap_sold(tier_id, quantity)
        except _ReservationConflict as exc:
            raise StoreUnavailableError("reserve_tickets") from exc

    async def _release(self, tier_id: str, quantity: int) -> None:
        await self._swap_sold(tier_id, -quantity)

    @retry(
        retry=retry_if_exception_type(_ReservationConflict),
        wait=wait_random(min=0, max=0.05),
        stop=stop_after_attempt(RESERVE_ATTEMPTS),
        reraise=True,
    )
    async def _swap_sold(self, tier_id: str, delta: int) -> None:
        tier = await self._store.get_tier(tier_id)
        if tier is None:
            raise NotFoundError(ErrorCode.TIER_NOT_FOUND, tier_id)
        new = max(tier.quantity_sold + delta, 0)
        if delta > 0 and new > tier.quantity_total:
            self._check_available(tier, delta)
        if not await self._store.swap_quantity_sold(tier_id, tier.quantity_sold, new):
            raise _ReservationConflict(tier_id)

    async def _dispatch(self, order_id: str) -> None:
        if self._notify is None:
            return
        try:
            # Enqueueing talks to the broker synchronously; keep it off the event loop
            await asyncio.to_thread(self._notify, order_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to dispatch order notification", extra={"order_id": order_id, "error": str(exc)})
