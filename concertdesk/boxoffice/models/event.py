"""Pydantic models for events and their ticket tiers."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class TicketTier(BaseModel):
    id: str
    event_id: str
    name: str
    description: str | None = None
    price_usd: Decimal
    quantity_total: int
    quantity_sold: int = 0
    is_active: bool = True

    @property
    def available(self) -> int:
        return max(self.quantity_total - self.quantity_sold, 0)

    @property
    def sold_out(self) -> bool:
        return self.available <= 0


class Event(BaseModel):
    id: str
    title: str
    artist_name: str
    description: str | None = None
    venue: str
    event_date: datetime
    image_url: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    ticket_tiers: list[TicketTier] = Field(default_factory=list)
