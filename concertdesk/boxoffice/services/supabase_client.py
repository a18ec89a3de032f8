"""Supabase-backed implementation of the ticket store.

Wraps the supabase Python client: PostgREST tables for catalog, coupons,
banks, rates and orders, the Storage bucket for payment receipts, and Auth
plus the ``has_role`` RPC for the back office. Conditional writes are
expressed as filtered updates and report success by the returned rows.
"""
from __future__ import annotations

import os
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import create_client, Client

from boxoffice.errors import DuplicateCouponError, StoreUnavailableError
from boxoffice.models.bank import Bank
from boxoffice.models.coupon import Coupon
from boxoffice.models.event import Event, TicketTier
from boxoffice.models.exchange_rate import ExchangeRate
from boxoffice.models.order import Order, OrderAttendee, OrderDetails, OrderStatus
from boxoffice.services.store import IdentityProvider, TicketStore
from boxoffice.utils.logger import logger

RECEIPTS_BUCKET = os.getenv("RECEIPTS_BUCKET", "receipts")

_UNIQUE_VIOLATION = "23505"
_INVALID_TEXT_REPRESENTATION = "22P02"  # e.g. a malformed uuid in a filter

_ORDER_DETAIL_COLUMNS = (
    "*, events (title, artist_name), ticket_tiers (name), "
    "banks (bank_name, iban), order_attendees (full_name)"
)


def _order_details(row: Dict[str, Any]) -> OrderDetails:
    row = dict(row)
    event = row.pop("events", None) or {}
    tier = row.pop("ticket_tiers", None) or {}
    bank = row.pop("banks", None) or {}
    attendees = row.pop("order_attendees", None) or []
    return OrderDetails(
        **row,
        event_title=event.get("title"),
        artist_name=event.get("artist_name"),
        tier_name=tier.get("name"),
        bank_name=bank.get("bank_name"),
        bank_iban=bank.get("iban"),
        attendees=[a["full_name"] for a in attendees],
    )


class SupabaseClient(TicketStore, IdentityProvider):
    """Wrapper around the Supabase python client for box office data."""

    def __init__(self) -> None:
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        if not url or not key:
            raise RuntimeError("Supabase env vars are not configured")
        self._client: Client = create_client(url, key)

    def _execute(self, query: Any, operation: str) -> List[Dict[str, Any]]:
        try:
            resp = query.execute()
        except APIError as exc:
            if exc.code == _INVALID_TEXT_REPRESENTATION:
                return []
            if exc.code == _UNIQUE_VIOLATION:
                raise
            logger.error("Supabase query failed", extra={"operation": operation, "error": exc.message})
            raise StoreUnavailableError(operation) from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase unreachable", extra={"operation": operation, "error": str(exc)})
            raise StoreUnavailableError(operation) from exc
        return resp.data or []

    # Catalog

    async def list_active_events(self, starting_after: datetime) -> List[Event]:
        rows = self._execute(
            self._client.table("events")
            .select("*, ticket_tiers (*)")
            .eq("is_active", True)
            .gte("event_date", starting_after.isoformat())
            .order("event_date"),
            "list_active_events",
        )
        logger.debug("Fetched active events", extra={"count": len(rows)})
        return [Event(**r) for r in rows]

    async def get_event(self, event_id: str) -> Optional[Event]:
        rows = self._execute(
            self._client.table("events").select("*, ticket_tiers (*)").eq("id", event_id).limit(1),
            "get_event",
        )
        return Event(**rows[0]) if rows else None

    async def get_tier(self, tier_id: str) -> Optional[TicketTier]:
        rows = self._execute(
            self._client.table("ticket_tiers").select("*").eq("id", tier_id).limit(1),
            "get_tier",
        )
        return TicketTier(**rows[0]) if rows else None

    async def swap_quantity_sold(self, tier_id: str, expected: int, new: int) -> bool:
        rows = self._execute(
            self._client.table("ticket_tiers")
            .update({"quantity_sold": new})
            .eq("id", tier_id)
            .eq("quantity_sold", expected),
            "swap_quantity_sold",
        )
        return bool(rows)

    # Back office events

    async def list_events(self) -> List[Event]:
        rows = self._execute(
            self._client.table("events").select("*, ticket_tiers (*)").order("event_date", desc=True),
            "list_events",
        )
        return [Event(**r) for r in rows]

    async def insert_event(self, record: Dict[str, Any]) -> Event:
        rows = self._execute(self._client.table("events").insert(record), "insert_event")
        logger.info("Inserted event")
        return Event(**rows[0])

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[Event]:
        rows = self._execute(
            self._client.table("events").update(fields).eq("id", event_id), "update_event"
        )
        return Event(**rows[0]) if rows else None

    async def delete_event(self, event_id: str) -> bool:
        rows = self._execute(self._client.table("events").delete().eq("id", event_id), "delete_event")
        return bool(rows)

    async def insert_tier(self, record: Dict[str, Any]) -> TicketTier:
        rows = self._execute(self._client.table("ticket_tiers").insert(record), "insert_tier")
        return TicketTier(**rows[0])

    async def delete_tier(self, tier_id: str) -> bool:
        rows = self._execute(self._client.table("ticket_tiers").delete().eq("id", tier_id), "delete_tier")
        return bool(rows)

    # Coupons

    async def find_coupon(self, code: str) -> Optional[Coupon]:
        rows = self._execute(
            self._client.table("coupons").select("*").eq("code", code).limit(1), "find_coupon"
        )
        return Coupon(**rows[0]) if rows else None

    async def list_coupons(self) -> List[Coupon]:
        rows = self._execute(
            self._client.table("coupons").select("*").order("created_at", desc=True), "list_coupons"
        )
        return [Coupon(**r) for r in rows]

    async def insert_coupon(self, record: Dict[str, Any]) -> Coupon:
        try:
            rows = self._execute(self._client.table("coupons").insert(record), "insert_coupon")
        except APIError as exc:
            raise DuplicateCouponError(record["code"]) from exc
        return Coupon(**rows[0])

    async def set_coupon_active(self, coupon_id: str, is_active: bool) -> Optional[Coupon]:
        rows = self._execute(
            self._client.table("coupons").update({"is_active": is_active}).eq("id", coupon_id),
            "set_coupon_active",
        )
        return Coupon(**rows[0]) if rows else None

    async def delete_coupon(self, coupon_id: str) -> bool:
        rows = self._execute(self._client.table("coupons").delete().eq("id", coupon_id), "delete_coupon")
        return bool(rows)

    async def redeem_coupon(self, coupon_id: str, order_id: str, used_at: datetime) -> bool:
        rows = self._execute(
            self._client.table("coupons")
            .update({"is_used": True, "used_at": used_at.isoformat(), "used_by_order_id": order_id})
            .eq("id", coupon_id)
            .eq("is_used", False)
            .eq("is_active", True),
            "redeem_coupon",
        )
        return bool(rows)

    async def release_coupon(self, coupon_id: str, order_id: str) -> None:
        self._execute(
            self._client.table("coupons")
            .update({"is_used": False, "used_at": None, "used_by_order_id": None})
            .eq("id", coupon_id)
            .eq("used_by_order_id", order_id),
            "release_coupon",
        )

    # Banks

    async def list_banks(self) -> List[Bank]:
        rows = self._execute(
            self._client.table("banks").select("*").order("created_at", desc=True), "list_banks"
        )
        return [Bank(**r) for r in rows]

    async def list_active_banks(self) -> List[Bank]:
        rows = self._execute(
            self._client.table("banks").select("*").eq("is_active", True).order("created_at"),
            "list_active_banks",
        )
        return [Bank(**r) for r in rows]

    async def insert_bank(self, record: Dict[str, Any]) -> Bank:
        rows = self._execute(self._client.table("banks").insert(record), "insert_bank")
        return Bank(**rows[0])

    async def update_bank(self, bank_id: str, fields: Dict[str, Any]) -> Optional[Bank]:
        rows = self._execute(self._client.table("banks").update(fields).eq("id", bank_id), "update_bank")
        return Bank(**rows[0]) if rows else None

    async def delete_bank(self, bank_id: str) -> bool:
        rows = self._execute(self._client.table("banks").delete().eq("id", bank_id), "delete_bank")
        return bool(rows)

    # Exchange rates

    async def latest_exchange_rate(self) -> Optional[ExchangeRate]:
        rows = self._execute(
            self._client.table("exchange_rates").select("*").order("fetched_at", desc=True).limit(1),
            "latest_exchange_rate",
        )
        return ExchangeRate(**rows[0]) if rows else None

    async def insert_exchange_rate(self, usd_to_tl: Decimal, fetched_at: datetime) -> ExchangeRate:
        rows = self._execute(
            self._client.table("exchange_rates").insert(
                {"usd_to_tl": str(usd_to_tl), "fetched_at": fetched_at.isoformat()}
            ),
            "insert_exchange_rate",
        )
        logger.info("Stored exchange rate", extra={"usd_to_tl": str(usd_to_tl)})
        return ExchangeRate(**rows[0])

    # Orders

    async def insert_order(self, record: Dict[str, Any]) -> Order:
        rows = self._execute(self._client.table("orders").insert(record), "insert_order")
        return Order(**rows[0])

    async def delete_order(self, order_id: str) -> None:
        self._execute(self._client.table("orders").delete().eq("id", order_id), "delete_order")

    async def insert_attendees(self, order_id: str, names: List[str]) -> List[OrderAttendee]:
        records = [{"order_id": order_id, "full_name": name} for name in names]
        rows = self._execute(self._client.table("order_attendees").insert(records), "insert_attendees")
        return [OrderAttendee(**r) for r in rows]

    async def delete_attendees(self, order_id: str) -> None:
        self._execute(
            self._client.table("order_attendees").delete().eq("order_id", order_id), "delete_attendees"
        )

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[OrderDetails]:
        query = self._client.table("orders").select(_ORDER_DETAIL_COLUMNS)
        if status is not None:
            query = query.eq("status", status.value)
        rows = self._execute(query.order("created_at", desc=True), "list_orders")
        return [_order_details(r) for r in rows]

    async def get_order(self, order_id: str) -> Optional[OrderDetails]:
        rows = self._execute(
            self._client.table("orders").select(_ORDER_DETAIL_COLUMNS).eq("id", order_id).limit(1),
            "get_order",
        )
        return _order_details(rows[0]) if rows else None

    async def swap_order_status(
        self, order_id: str, expected: OrderStatus, new: OrderStatus
    ) -> Optional[Order]:
        rows = self._execute(
            self._client.table("orders")
            .update({"status": new.value})
            .eq("id", order_id)
            .eq("status", expected.value),
            "swap_order_status",
        )
        return Order(**rows[0]) if rows else None

    async def count_active_events(self) -> int:
        query = self._client.table("events").select("id", count="exact", head=True).eq("is_active", True)
        try:
            resp = query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StoreUnavailableError("count_active_events") from exc
        return resp.count or 0

    async def list_order_totals(self) -> List[Tuple[OrderStatus, Decimal]]:
        rows = self._execute(self._client.table("orders").select("status, price_usd"), "list_order_totals")
        return [(OrderStatus(r["status"]), Decimal(str(r["price_usd"]))) for r in rows]

    # Receipts

    async def upload_receipt(self, key: str, content: bytes, content_type: str | None) -> str:
        options = {"content-type": content_type} if content_type else None
        self._client.storage.from_(RECEIPTS_BUCKET).upload(path=key, file=content, file_options=options)
        logger.info("Uploaded receipt", extra={"key": key, "size": len(content)})
        return key

    async def remove_receipt(self, key: str) -> None:
        self._client.storage.from_(RECEIPTS_BUCKET).remove([key])

    def receipt_public_url(self, key: str) -> str:
        return self._client.storage.from_(RECEIPTS_BUCKET).get_public_url(key)

    # Auth

    async def user_id_for_token(self, access_token: str) -> Optional[str]:
        try:
            resp = self._client.auth.get_user(access_token)
        except Exception as exc:  # noqa: BLE001
            logger.info("Rejected access token", extra={"error": str(exc)})
            return None
        user = getattr(resp, "user", None)
        return user.id if user else None

    async def has_role(self, user_id: str, role: str) -> bool:
        result = self._execute(self._client.rpc("has_role", {"_user_id": user_id, "_role": role}), "has_role")
        return result is True
