"""Back office operations: order review, events and tiers, banks, dashboard.

Authorization is not checked here; routers only reach this service through
the admin dependency.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from boxoffice.errors import ErrorCode, InvalidTransitionError, NotFoundError
from boxoffice.models.bank import Bank
from boxoffice.models.dashboard import DashboardStats
from boxoffice.models.event import Event, TicketTier
from boxoffice.models.order import Order, OrderDetails, OrderStatus
from boxoffice.services.store import TicketStore
from boxoffice.utils.logger import logger


class EventInput(BaseModel):
    title: str = Field(min_length=1)
    artist_name: str = Field(min_length=1)
    description: Optional[str] = None
    venue: str = Field(min_length=1)
    event_date: datetime
    image_url: Optional[str] = None
    is_active: bool = True

    @field_validator("description", "image_url")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def record(self) -> dict:
        return self.model_dump(mode="json")


class TierInput(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    price_usd: Decimal = Field(ge=0)
    quantity_total: int = Field(ge=1)


class BankInput(BaseModel):
    bank_name: str = Field(min_length=1)
    account_holder_name: str = Field(min_length=1)
    iban: str = Field(min_length=1)
    is_active: bool = True

    @field_validator("iban")
    @classmethod
    def _compact_iban(cls, value: str) -> str:
        return "".join(value.split()).upper()


class ReviewedOrder(OrderDetails):
    receipt_public_url: Optional[str] = None


class AdminService:
    def __init__(self, store: TicketStore) -> None:
        self._store = store

    # Orders

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[OrderDetails]:
        return await self._store.list_orders(status)

    async def get_order(self, order_id: str) -> ReviewedOrder:
        order = await self._store.get_order(order_id)
        if order is None:
            raise NotFoundError(ErrorCode.ORDER_NOT_FOUND, order_id)
        url = self._store.receipt_public_url(order.receipt_url) if order.receipt_url else None
        return ReviewedOrder(**order.model_dump(), receipt_public_url=url)

    async def set_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """Move a pending order to approved or rejected.

        Only the status column changes. Rejection releases nothing: no
        refund, no inventory, no buyer message.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is not pending, or the
                target is pending.
        """
        current = await self._store.get_order(order_id)
        if current is None:
            raise NotFoundError(ErrorCode.ORDER_NOT_FOUND, order_id)
        if current.status.is_terminal or not status.is_terminal:
            raise InvalidTransitionError(current.status.value, status.value)

        updated = await self._store.swap_order_status(order_id, OrderStatus.PENDING, status)
        if updated is None:
            # Another reviewer got there first
            latest = await self._store.get_order(order_id)
            found = latest.status.value if latest else "missing"
            raise InvalidTransitionError(found, status.value)
        logger.info("Order reviewed", extra={"order_id": order_id, "status": status.value})
        return updated

    async def stats(self) -> DashboardStats:
        events_count = await self._store.count_active_events()
        totals = await self._store.list_order_totals()
        return DashboardStats(
            events_count=events_count,
            total_orders=len(totals),
            pending_orders=sum(1 for status, _ in totals if status is OrderStatus.PENDING),
            total_revenue_usd=sum(
                (price for status, price in totals if status is OrderStatus.APPROVED), Decimal(0)
            ),
        )

    # Events and tiers

    async def list_events(self) -> List[Event]:
        return await self._store.list_events()

    async def create_event(self, data: EventInput) -> Event:
        event = await self._store.insert_event(data.record())
        logger.info("Event created", extra={"event_id": event.id})
        return event

    async def update_event(self, event_id: str, data: EventInput) -> Event:
        event = await self._store.update_event(event_id, data.record())
        if event is None:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, event_id)
        return event

    async def delete_event(self, event_id: str) -> None:
        if not await self._store.delete_event(event_id):
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, event_id)

    async def add_tier(self, event_id: str, data: TierInput) -> TicketTier:
        if await self._store.get_event(event_id) is None:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, event_id)
        record = data.model_dump(mode="json")
        record["event_id"] = event_id
        return await self._store.insert_tier(record)

    async def delete_tier(self, tier_id: str) -> None:
        if not await self._store.delete_tier(tier_id):
            raise NotFoundError(ErrorCode.TIER_NOT_FOUND, tier_id)

    # Banks

    async def list_banks(self) -> List[Bank]:
        return await self._store.list_banks()

    async def create_bank(self, data: BankInput) -> Bank:
        return await self._store.insert_bank(data.model_dump())

    async def update_bank(self, bank_id: str, data: BankInput) -> Bank:
        bank = await self._store.update_bank(bank_id, data.model_dump())
        if bank is None:
            raise NotFoundError(ErrorCode.BANK_NOT_FOUND, bank_id)
        return bank

    async def set_bank_active(self, bank_id: str, is_active: bool) -> Bank:
        bank = await self._store.update_bank(bank_id, {"is_active": is_active})
        if bank is None:
            raise NotFoundError(ErrorCode.BANK_NOT_FOUND, bank_id)
        return bank

    async def delete_bank(self, bank_id: str) -> None:
        if not await self._store.delete_bank(bank_id):
            raise NotFoundError(ErrorCode.BANK_NOT_FOUND, bank_id)
