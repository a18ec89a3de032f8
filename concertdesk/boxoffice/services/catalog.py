"""Public catalog: upcoming events and their purchasable tiers."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from boxoffice.errors import ErrorCode, NotFoundError
from boxoffice.models.event import Event, TicketTier
from boxoffice.services.store import TicketStore


class TierAvailability(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price_usd: Decimal
    quantity_total: int
    quantity_sold: int
    available: int
    sold_out: bool

    @classmethod
    def from_tier(cls, tier: TicketTier) -> "TierAvailability":
        return cls(
            id=tier.id,
            name=tier.name,
            description=tier.description,
            price_usd=tier.price_usd,
            quantity_total=tier.quantity_total,
            quantity_sold=tier.quantity_sold,
            available=tier.available,
            sold_out=tier.sold_out,
        )


class EventSummary(BaseModel):
    id: str
    title: str
    artist_name: str
    venue: str
    event_date: datetime
    image_url: Optional[str] = None
    min_price_usd: Optional[Decimal] = None


class EventDetail(BaseModel):
    id: str
    title: str
    artist_name: str
    description: Optional[str] = None
    venue: str
    event_date: datetime
    image_url: Optional[str] = None
    tiers: List[TierAvailability]


class CatalogService:
    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def list_upcoming(self, now: Optional[datetime] = None) -> List[EventSummary]:
        events = await self._store.list_active_events(now or datetime.now(timezone.utc))
        return [self._summary(event) for event in events]

    async def get_event(self, event_id: str) -> EventDetail:
        """Return an active event with its active tiers.

        Raises:
            NotFoundError: If the event does not exist or is inactive.
        """
        event = await self._store.get_event(event_id)
        if event is None or not event.is_active:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, event_id)
        return EventDetail(
            id=event.id,
            title=event.title,
            artist_name=event.artist_name,
            description=event.description,
            venue=event.venue,
            event_date=event.event_date,
            image_url=event.image_url,
            tiers=[TierAvailability.from_tier(t) for t in event.ticket_tiers if t.is_active],
        )

    @staticmethod
    def _summary(event: Event) -> EventSummary:
        prices = [t.price_usd for t in event.ticket_tiers if t.is_active]
        return EventSummary(
            id=event.id,
            title=event.title,
            artist_name=event.artist_name,
            venue=event.venue,
            event_date=event.event_date,
            image_url=event.image_url,
            min_price_usd=min(prices) if prices else None,
        )
