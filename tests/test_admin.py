"""Unit tests for AdminService: order review, dashboard, events, tiers and banks."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from boxoffice.errors import InvalidTransitionError, NotFoundError
from boxoffice.models.order import OrderStatus
from boxoffice.services.admin import AdminService, BankInput, EventInput, TierInput
from boxoffice.services.checkout import CheckoutRequest, CheckoutService, ReceiptUpload

from conftest import run


def place_order(store, catalog, quantity=2, **overrides):
    request = CheckoutRequest.parse(
        event_id=catalog["event"]["id"],
        tier_id=catalog["tier"]["id"],
        quantity=quantity,
        buyer_email="buyer@example.com",
        buyer_name="Sara",
        buyer_surname="Tehrani",
        **overrides,
    )
    receipt = ReceiptUpload("receipt.png", b"png", "image/png")
    return run(CheckoutService(store).create_order(request, receipt))


@pytest.fixture
def admin(store) -> AdminService:
    return AdminService(store)


class TestOrderReview:
    """Pending orders move to approved or rejected exactly once."""

    def test_approve_changes_only_status(self, store, catalog, admin):
        order = place_order(store, catalog)
        before = dict(store.orders[order.id])

        updated = run(admin.set_order_status(order.id, OrderStatus.APPROVED))

        assert updated.status is OrderStatus.APPROVED
        after = store.orders[order.id]
        changed = {k for k in after if after[k] != before[k]}
        assert changed == {"status"}

    def test_reject_keeps_inventory_sold(self, store, catalog, admin):
        order = place_order(store, catalog, quantity=3)
        run(admin.set_order_status(order.id, OrderStatus.REJECTED))
        assert catalog["tier"]["quantity_sold"] == 3

    @pytest.mark.parametrize("first", [OrderStatus.APPROVED, OrderStatus.REJECTED])
    @pytest.mark.parametrize("second", [OrderStatus.APPROVED, OrderStatus.REJECTED])
    def test_terminal_orders_are_final(self, store, catalog, admin, first, second):
        order = place_order(store, catalog)
        run(admin.set_order_status(order.id, first))
        with pytest.raises(InvalidTransitionError) as exc:
            run(admin.set_order_status(order.id, second))
        assert exc.value.current == first.value
        assert store.orders[order.id]["status"] == first.value

    def test_pending_is_not_a_target(self, store, catalog, admin):
        order = place_order(store, catalog)
        with pytest.raises(InvalidTransitionError):
            run(admin.set_order_status(order.id, OrderStatus.PENDING))

    def test_unknown_order(self, admin):
        with pytest.raises(NotFoundError):
            run(admin.set_order_status("missing", OrderStatus.APPROVED))

    def test_concurrent_review_loses(self, store, catalog, admin):
        """A second reviewer acting between read and write gets a conflict."""
        order = place_order(store, catalog)
        original = store.swap_order_status

        async def other_reviewer_first(order_id, expected, new):
            store.orders[order_id]["status"] = OrderStatus.REJECTED.value
            return await original(order_id, expected, new)

        store.swap_order_status = other_reviewer_first
        with pytest.raises(InvalidTransitionError) as exc:
            run(admin.set_order_status(order.id, OrderStatus.APPROVED))
        assert exc.value.current == "rejected"
        assert store.orders[order.id]["status"] == "rejected"

    def test_order_details_include_receipt_link(self, store, catalog, admin):
        order = place_order(store, catalog, attendees=["Ali Rezaei"])
        reviewed = run(admin.get_order(order.id))
        assert reviewed.receipt_public_url == f"https://storage.test/receipts/{order.receipt_url}"
        assert reviewed.event_title == catalog["event"]["title"]
        assert reviewed.tier_name == "Regular"
        assert reviewed.bank_iban == catalog["bank"]["iban"]
        assert reviewed.attendees == ["Ali Rezaei"]

    def test_list_filters_by_status(self, store, catalog, admin):
        first = place_order(store, catalog)
        second = place_order(store, catalog)
        run(admin.set_order_status(first.id, OrderStatus.APPROVED))

        pending = run(admin.list_orders(OrderStatus.PENDING))
        everything = run(admin.list_orders())

        assert [o.id for o in pending] == [second.id]
        assert [o.id for o in everything] == [second.id, first.id]


class TestStats:
    def test_revenue_counts_approved_only(self, store, catalog, admin):
        store.add_event(is_active=False)
        approved = place_order(store, catalog, quantity=2)
        place_order(store, catalog, quantity=1)
        rejected = place_order(store, catalog, quantity=1)
        run(admin.set_order_status(approved.id, OrderStatus.APPROVED))
        run(admin.set_order_status(rejected.id, OrderStatus.REJECTED))

        stats = run(admin.stats())

        assert stats.events_count == 1
        assert stats.total_orders == 3
        assert stats.pending_orders == 1
        assert stats.total_revenue_usd == Decimal("200")

    def test_empty_store(self, admin):
        stats = run(admin.stats())
        assert stats.total_orders == 0
        assert stats.total_revenue_usd == Decimal(0)


class TestEvents:
    def event_input(self, **overrides) -> EventInput:
        data = dict(
            title="Summer Night",
            artist_name="Band",
            venue="Harbiye",
            event_date=datetime.now(timezone.utc) + timedelta(days=60),
            description="",
        )
        data.update(overrides)
        return EventInput(**data)

    def test_create_and_update(self, store, admin):
        event = run(admin.create_event(self.event_input()))
        assert event.description is None
        assert event.id in store.events

        updated = run(admin.update_event(event.id, self.event_input(title="Renamed")))
        assert updated.title == "Renamed"

    def test_update_missing(self, admin):
        with pytest.raises(NotFoundError):
            run(admin.update_event("missing", self.event_input()))

    def test_delete(self, store, catalog, admin):
        run(admin.delete_event(catalog["event"]["id"]))
        assert store.events == {}
        with pytest.raises(NotFoundError):
            run(admin.delete_event(catalog["event"]["id"]))

    def test_add_and_delete_tier(self, store, catalog, admin):
        tier = run(admin.add_tier(catalog["event"]["id"], TierInput(name="VIP", price_usd="250", quantity_total=5)))
        assert tier.event_id == catalog["event"]["id"]
        assert tier.price_usd == Decimal("250")
        assert tier.quantity_sold == 0

        run(admin.delete_tier(tier.id))
        assert tier.id not in store.tiers

    def test_tier_needs_event(self, admin):
        with pytest.raises(NotFoundError):
            run(admin.add_tier("missing", TierInput(name="VIP", price_usd="250", quantity_total=5)))


class TestBanks:
    def test_iban_is_compacted(self, admin):
        bank = run(
            admin.create_bank(
                BankInput(bank_name="Garanti", account_holder_name="Box Office Ltd", iban="tr12 0006 2000 0000 0012 3456 78")
            )
        )
        assert bank.iban == "TR120006200000000012345678"

    def test_toggle_and_delete(self, store, catalog, admin):
        bank_id = catalog["bank"]["id"]
        bank = run(admin.set_bank_active(bank_id, False))
        assert bank.is_active is False

        run(admin.delete_bank(bank_id))
        assert store.banks == {}
        with pytest.raises(NotFoundError):
            run(admin.set_bank_active(bank_id, True))

    def test_list_newest_first(self, store, catalog, admin):
        newer = store.add_bank(bank_name="Akbank")
        assert [b.id for b in run(admin.list_banks())] == [newer["id"], catalog["bank"]["id"]]
