"""Pydantic models for orders and attendees."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class OrderAttendee(BaseModel):
    id: str | None = None
    order_id: str
    full_name: str


class Order(BaseModel):
    id: str
    event_id: str
    ticket_tier_id: str
    buyer_name: str
    buyer_surname: str
    buyer_email: str
    quantity: int
    price_usd: Decimal
    price_tl: Decimal
    exchange_rate_used: Decimal
    coupon_id: str | None = None
    discount_applied: int | None = 0
    bank_id: str
    receipt_url: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderDetails(Order):
    """Order joined with the names an operator needs to review it."""

    event_title: str | None = None
    artist_name: str | None = None
    tier_name: str | None = None
    bank_name: str | None = None
    bank_iban: str | None = None
    attendees: list[str] = Field(default_factory=list)
