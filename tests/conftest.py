"""Pytest configuration and shared fixtures.

``InMemoryStore`` implements the store interface over plain dicts so the
services and the HTTP API run without a Supabase project. Individual calls
can be made to fail through ``fail_on``.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from boxoffice.errors import DuplicateCouponError
from boxoffice.models.bank import Bank
from boxoffice.models.coupon import Coupon
from boxoffice.models.event import Event, TicketTier
from boxoffice.models.exchange_rate import ExchangeRate
from boxoffice.models.order import Order, OrderAttendee, OrderDetails, OrderStatus
from boxoffice.services.store import IdentityProvider, TicketStore

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class StoreFailure(Exception):
    pass


def _parse_dates(record: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(record)
    if isinstance(record.get("event_date"), str):
        record["event_date"] = datetime.fromisoformat(record["event_date"].replace("Z", "+00:00"))
    return record


class InMemoryStore(TicketStore):
    def __init__(self) -> None:
        self.events: Dict[str, Dict[str, Any]] = {}
        self.tiers: Dict[str, Dict[str, Any]] = {}
        self.coupons: Dict[str, Dict[str, Any]] = {}
        self.banks: Dict[str, Dict[str, Any]] = {}
        self.rates: List[Dict[str, Any]] = []
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.attendees: List[Dict[str, Any]] = []
        self.receipts: Dict[str, bytes] = {}
        self.fail_on: set = set()
        self.calls: List[str] = []
        self._clock = 0

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise StoreFailure(name)

    def _stamp(self) -> datetime:
        self._clock += 1
        return NOW + timedelta(seconds=self._clock)

    # seeding helpers

    def add_event(self, **fields: Any) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "title": "Night Concert",
            "artist_name": "Artist",
            "description": None,
            "venue": "Istanbul Arena",
            "event_date": datetime.now(timezone.utc) + timedelta(days=30),
            "image_url": None,
            "is_active": True,
            "created_at": self._stamp(),
        }
        row.update(fields)
        self.events[row["id"]] = row
        return row

    def add_tier(self, event_id: str, **fields: Any) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "event_id": event_id,
            "name": "Regular",
            "description": None,
            "price_usd": Decimal("100"),
            "quantity_total": 10,
            "quantity_sold": 0,
            "is_active": True,
        }
        row.update(fields)
        self.tiers[row["id"]] = row
        return row

    def add_coupon(self, code: str, discount_percent: int = 10, **fields: Any) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "code": code,
            "discount_percent": discount_percent,
            "is_active": True,
            "is_used": False,
            "used_at": None,
            "used_by_order_id": None,
            "created_at": self._stamp(),
        }
        row.update(fields)
        self.coupons[row["id"]] = row
        return row

    def add_bank(self, **fields: Any) -> Dict[str, Any]:
        row = {
            "id": str(uuid4()),
            "bank_name": "Ziraat",
            "account_holder_name": "Box Office Ltd",
            "iban": "TR000000000000000000000001",
            "is_active": True,
            "created_at": self._stamp(),
        }
        row.update(fields)
        self.banks[row["id"]] = row
        return row

    def add_rate(self, usd_to_tl: str, fetched_at: datetime) -> None:
        self.rates.append({"id": str(uuid4()), "usd_to_tl": Decimal(usd_to_tl), "fetched_at": fetched_at})

    def _event(self, row: Dict[str, Any]) -> Event:
        tiers = [TicketTier(**t) for t in self.tiers.values() if t["event_id"] == row["id"]]
        return Event(**row, ticket_tiers=tiers)

    def _details(self, row: Dict[str, Any]) -> OrderDetails:
        event = self.events.get(row["event_id"], {})
        tier = self.tiers.get(row["ticket_tier_id"], {})
        bank = self.banks.get(row["bank_id"], {})
        return OrderDetails(
            **row,
            event_title=event.get("title"),
            artist_name=event.get("artist_name"),
            tier_name=tier.get("name"),
            bank_name=bank.get("bank_name"),
            bank_iban=bank.get("iban"),
            attendees=[a["full_name"] for a in self.attendees if a["order_id"] == row["id"]],
        )

    # catalog

    async def list_active_events(self, starting_after: datetime) -> List[Event]:
        self._call("list_active_events")
        rows = [
            r for r in self.events.values() if r["is_active"] and r["event_date"] >= starting_after
        ]
        return [self._event(r) for r in sorted(rows, key=lambda r: r["event_date"])]

    async def get_event(self, event_id: str) -> Optional[Event]:
        self._call("get_event")
        row = self.events.get(event_id)
        return self._event(row) if row else None

    async def get_tier(self, tier_id: str) -> Optional[TicketTier]:
        self._call("get_tier")
        row = self.tiers.get(tier_id)
        return TicketTier(**row) if row else None

    async def swap_quantity_sold(self, tier_id: str, expected: int, new: int) -> bool:
        self._call("swap_quantity_sold")
        row = self.tiers.get(tier_id)
        if row is None or row["quantity_sold"] != expected:
            return False
        row["quantity_sold"] = new
        return True

    async def list_events(self) -> List[Event]:
        self._call("list_events")
        rows = sorted(self.events.values(), key=lambda r: r["event_date"], reverse=True)
        return [self._event(r) for r in rows]

    async def insert_event(self, record: Dict[str, Any]) -> Event:
        self._call("insert_event")
        row = self.add_event(**_parse_dates(record))
        return self._event(row)

    async def update_event(self, event_id: str, fields: Dict[str, Any]) -> Optional[Event]:
        self._call("update_event")
        row = self.events.get(event_id)
        if row is None:
            return None
        row.update(_parse_dates(fields))
        return self._event(row)

    async def delete_event(self, event_id: str) -> bool:
        self._call("delete_event")
        return self.events.pop(event_id, None) is not None

    async def insert_tier(self, record: Dict[str, Any]) -> TicketTier:
        self._call("insert_tier")
        record = dict(record)
        event_id = record.pop("event_id")
        return TicketTier(**self.add_tier(event_id, **record))

    async def delete_tier(self, tier_id: str) -> bool:
        self._call("delete_tier")
        return self.tiers.pop(tier_id, None) is not None

    # coupons

    async def find_coupon(self, code: str) -> Optional[Coupon]:
        self._call("find_coupon")
        for row in self.coupons.values():
            if row["code"] == code:
                return Coupon(**row)
        return None

    async def list_coupons(self) -> List[Coupon]:
        self._call("list_coupons")
        rows = sorted(self.coupons.values(), key=lambda r: r["created_at"], reverse=True)
        return [Coupon(**r) for r in rows]

    async def insert_coupon(self, record: Dict[str, Any]) -> Coupon:
        self._call("insert_coupon")
        if any(r["code"] == record["code"] for r in self.coupons.values()):
            raise DuplicateCouponError(record["code"])
        return Coupon(**self.add_coupon(**record))

    async def set_coupon_active(self, coupon_id: str, is_active: bool) -> Optional[Coupon]:
        self._call("set_coupon_active")
        row = self.coupons.get(coupon_id)
        if row is None:
            return None
        row["is_active"] = is_active
        return Coupon(**row)

    async def delete_coupon(self, coupon_id: str) -> bool:
        self._call("delete_coupon")
        return self.coupons.pop(coupon_id, None) is not None

    async def redeem_coupon(self, coupon_id: str, order_id: str, used_at: datetime) -> bool:
        self._call("redeem_coupon")
        row = self.coupons.get(coupon_id)
        if row is None or row["is_used"] or not row["is_active"]:
            return False
        row.update(is_used=True, used_at=used_at, used_by_order_id=order_id)
        return True

    async def release_coupon(self, coupon_id: str, order_id: str) -> None:
        self._call("release_coupon")
        row = self.coupons.get(coupon_id)
        if row is not None and row["used_by_order_id"] == order_id:
            row.update(is_used=False, used_at=None, used_by_order_id=None)

    # banks

    async def list_banks(self) -> List[Bank]:
        self._call("list_banks")
        rows = sorted(self.banks.values(), key=lambda r: r["created_at"], reverse=True)
        return [Bank(**r) for r in rows]

    async def list_active_banks(self) -> List[Bank]:
        self._call("list_active_banks")
        rows = sorted((r for r in self.banks.values() if r["is_active"]), key=lambda r: r["created_at"])
        return [Bank(**r) for r in rows]

    async def insert_bank(self, record: Dict[str, Any]) -> Bank:
        self._call("insert_bank")
        return Bank(**self.add_bank(**record))

    async def update_bank(self, bank_id: str, fields: Dict[str, Any]) -> Optional[Bank]:
        self._call("update_bank")
        row = self.banks.get(bank_id)
        if row is None:
            return None
        row.update(fields)
        return Bank(**row)

    async def delete_bank(self, bank_id: str) -> bool:
        self._call("delete_bank")
        return self.banks.pop(bank_id, None) is not None

    # rates

    async def latest_exchange_rate(self) -> Optional[ExchangeRate]:
        self._call("latest_exchange_rate")
        if not self.rates:
            return None
        return ExchangeRate(**max(self.rates, key=lambda r: r["fetched_at"]))

    async def insert_exchange_rate(self, usd_to_tl: Decimal, fetched_at: datetime) -> ExchangeRate:
        self._call("insert_exchange_rate")
        self.rates.append({"id": str(uuid4()), "usd_to_tl": usd_to_tl, "fetched_at": fetched_at})
        return ExchangeRate(**self.rates[-1])

    # orders

    async def insert_order(self, record: Dict[str, Any]) -> Order:
        self._call("insert_order")
        row = dict(record)
        row.setdefault("id", str(uuid4()))
        row["created_at"] = row["updated_at"] = self._stamp()
        self.orders[row["id"]] = row
        return Order(**row)

    async def delete_order(self, order_id: str) -> None:
        self._call("delete_order")
        self.orders.pop(order_id, None)

    async def insert_attendees(self, order_id: str, names: List[str]) -> List[OrderAttendee]:
        self._call("insert_attendees")
        rows = [{"id": str(uuid4()), "order_id": order_id, "full_name": n} for n in names]
        self.attendees.extend(rows)
        return [OrderAttendee(**r) for r in rows]

    async def delete_attendees(self, order_id: str) -> None:
        self._call("delete_attendees")
        self.attendees = [a for a in self.attendees if a["order_id"] != order_id]

    async def list_orders(self, status: Optional[OrderStatus] = None) -> List[OrderDetails]:
        self._call("list_orders")
        rows = sorted(self.orders.values(), key=lambda r: r["created_at"], reverse=True)
        if status is not None:
            rows = [r for r in rows if OrderStatus(r["status"]) is status]
        return [self._details(r) for r in rows]

    async def get_order(self, order_id: str) -> Optional[OrderDetails]:
        self._call("get_order")
        row = self.orders.get(order_id)
        return self._details(row) if row else None

    async def swap_order_status(
        self, order_id: str, expected: OrderStatus, new: OrderStatus
    ) -> Optional[Order]:
        self._call("swap_order_status")
        row = self.orders.get(order_id)
        if row is None or OrderStatus(row["status"]) is not expected:
            return None
        row["status"] = new.value
        return Order(**row)

    async def count_active_events(self) -> int:
        self._call("count_active_events")
        return sum(1 for r in self.events.values() if r["is_active"])

    async def list_order_totals(self) -> List[Tuple[OrderStatus, Decimal]]:
        self._call("list_order_totals")
        return [(OrderStatus(r["status"]), Decimal(str(r["price_usd"]))) for r in self.orders.values()]

    # receipts

    async def upload_receipt(self, key: str, content: bytes, content_type: Optional[str]) -> str:
        self._call("upload_receipt")
        self.receipts[key] = content
        return key

    async def remove_receipt(self, key: str) -> None:
        self._call("remove_receipt")
        self.receipts.pop(key, None)

    def receipt_public_url(self, key: str) -> str:
        return f"https://storage.test/receipts/{key}"


class FakeIdentity(IdentityProvider):
    def __init__(self) -> None:
        self.tokens = {"admin-token": "admin-user", "user-token": "plain-user"}
        self.admins = {"admin-user"}

    async def user_id_for_token(self, access_token: str) -> Optional[str]:
        return self.tokens.get(access_token)

    async def has_role(self, user_id: str, role: str) -> bool:
        return role == "admin" and user_id in self.admins


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: List[str] = []
        self.fail = fail

    def __call__(self, order_id: str) -> None:
        self.sent.append(order_id)
        if self.fail:
            raise ConnectionError("broker unreachable")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def catalog(store: InMemoryStore) -> Dict[str, Any]:
    """One active event with a $100 tier of 10 tickets, a bank, and a fresh 34.5 rate."""
    event = store.add_event()
    tier = store.add_tier(event["id"])
    bank = store.add_bank()
    store.add_rate("34.5", datetime.now(timezone.utc) - timedelta(minutes=5))
    return {"event": event, "tier": tier, "bank": bank}


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(store: InMemoryStore, notifier: RecordingNotifier) -> TestClient:
    from boxoffice import dependencies
    from boxoffice.main import app

    app.dependency_overrides[dependencies.get_store] = lambda: store
    app.dependency_overrides[dependencies.get_identity] = FakeIdentity
    app.dependency_overrides[dependencies.get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer admin-token"}
