"""Store interface (repository pattern).

Services depend on this interface only; ``SupabaseClient`` is the production
implementation. Every conditional write returns whether it took effect so
callers can detect a lost race instead of overwriting it.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from boxoffice.models.bank import Bank
from boxoffice.models.coupon import Coupon
from boxoffice.models.event import Event, TicketTier
from boxoffice.models.exchange_rate import ExchangeRate
from boxoffice.models.order import Order, OrderAttendee, OrderDetails, OrderStatus


class TicketStore(ABC):
    """Interface for box office persistence and receipt storage."""

    # Catalog

    @abstractmethod
    async def list_active_events(self, starting_after: datetime) -> List[Event]:
        """Return active events dated at or after ``starting_after``, soonest first."""
        ...

    @abstractmethod
    async def get_event(self, event_id: str) -> Optional[Event]:
        """Return an event with all its tiers, or None if not found."""
        ...

    @abstractmethod
    async def get_tier(self, tier_id: str) -> Optional[TicketTier]:
        ...

    @abstractmethod
    async def swap_quantity_sold(self, tier_id: str, expected: int, new: int) -> bool:
        """Set ``quantity_sold`` to ``new`` only if it still equals ``expected``."""
        ...

    # Back office events

    @abstractmethod
    async def list_events(self) -> List[Event]:
        """Return every event with tiers, latest event date first."""
        ...

    @abstractmethod
    async def insert_event(self, record: Dict[str, Any]) -> Event:
        ...

    @abstractmethod
    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[Event]:
        ...

    @abstractmethod
    async def delete_event(self, event_id: str) -> bool:
        ...

    @abstractmethod
    async def insert_tier(self, record: Dict[str, Any]) -> TicketTier:
        ...

    @abstractmethod
    async def delete_tier(self, tier_id: str) -> bool:
        ...

    # Coupons

    @abstractmethod
    async def find_coupon(self, code: str) -> Optional[Coupon]:
        """Return the coupon with exactly this code, whatever its state."""
        ...

    @abstractmethod
    async def list_coupons(self) -> List[Coupon]:
        ...

    @abstractmethod
    async def insert_coupon(self, record: Dict[str, Any]) -> Coupon:
        """Insert a coupon; raises DuplicateCouponError on a taken code."""
        ...

    @abstractmethod
    async def set_coupon_active(self, coupon_id: str, is_active: bool) -> Optional[Coupon]:
        ...

    @abstractmethod
    async def delete_coupon(self, coupon_id: str) -> bool:
        ...

    @abstractmethod
    async def redeem_coupon(self, coupon_id: str, order_id: str, used_at: datetime) -> bool:
        """Mark the coupon used by ``order_id`` only if it is still active and unused."""
        ...

    @abstractmethod
    async def release_coupon(self, coupon_id: str, order_id: str) -> None:
        """Undo ``redeem_coupon`` for ``order_id``; no-op if another order holds it."""
        ...

    # Banks

    @abstractmethod
    async def list_banks(self) -> List[Bank]:
        """Return every bank account, newest first."""
        ...

    @abstractmethod
    async def list_active_banks(self) -> List[Bank]:
        """Return active bank accounts, oldest first."""
        ...

    @abstractmethod
    async def insert_bank(self, record: Dict[str, Any]) -> Bank:
        ...

    @abstractmethod
    async def update_bank(self, bank_id: str, fields: Dict[str, Any]) -> Optional[Bank]:
        ...

    @abstractmethod
    async def delete_bank(self, bank_id: str) -> bool:
        ...

    # Exchange rates

    @abstractmethod
    async def latest_exchange_rate(self) -> Optional[ExchangeRate]:
        ...

    @abstractmethod
    async def insert_exchange_rate(self, usd_to_tl: Decimal, fetched_at: datetime) -> ExchangeRate:
        ...

    # Orders

    @abstractmethod
    async def insert_order(self, record: Dict[str, Any]) -> Order:
        ...

    @abstractmethod
    async def delete_order(self, order_id: str) -> None:
        ...

    @abstractmethod
    async def insert_attendees(self, order_id: str, names: List[str]) -> List[OrderAttendee]:
        ...

    @abstractmethod
    async def delete_attendees(self, order_id: str) -> None:
        ...

    @abstractmethod
    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[OrderDetails]:
        """Return orders joined with event, tier, bank and attendees, newest first."""
        ...

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[OrderDetails]:
        ...

    @abstractmethod
    async def swap_order_status(
        self, order_id: str, expected: OrderStatus, new: OrderStatus
    ) -> Optional[Order]:
        """Change status only if it still equals ``expected``; None otherwise."""
        ...

    @abstractmethod
    async def count_active_events(self) -> int:
        ...

    @abstractmethod
    async def list_order_totals(self) -> List[Tuple[OrderStatus, Decimal]]:
        """Return ``(status, price_usd)`` for every order."""
        ...

    # Receipts

    @abstractmethod
    async def upload_receipt(self, key: str, content: bytes, content_type: str | None) -> str:
        """Store a receipt file and return its object key."""
        ...

    @abstractmethod
    async def remove_receipt(self, key: str) -> None:
        ...

    @abstractmethod
    def receipt_public_url(self, key: str) -> str:
        ...


class IdentityProvider(ABC):
    """Resolves access tokens to users and answers role checks."""

    @abstractmethod
    async def user_id_for_token(self, access_token: str) -> Optional[str]:
        """Return the user id behind a valid token, None otherwise."""
        ...

    @abstractmethod
    async def has_role(self, user_id: str, role: str) -> bool:
        ...
