"""Back office router: orders review, events, coupons, banks and stats.

Every endpoint requires a bearer token of a user with the admin role.
"""
from __future__ import annotations

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from boxoffice.dependencies import get_admin, get_coupons, require_admin
from boxoffice.models.bank import Bank
from boxoffice.models.coupon import Coupon
from boxoffice.models.dashboard import DashboardStats
from boxoffice.models.event import Event, TicketTier
from boxoffice.models.order import Order, OrderDetails, OrderStatus
from boxoffice.services.admin import AdminService, BankInput, EventInput, ReviewedOrder, TierInput
from boxoffice.services.coupons import CouponService

router = APIRouter(dependencies=[Depends(require_admin)])


class StatusIn(BaseModel):
    status: OrderStatus


class ActiveIn(BaseModel):
    is_active: bool


class CouponIn(BaseModel):
    code: Optional[str] = None
    discount_percent: int = Field(10, ge=1, le=100)
    is_active: bool = True


@router.get("/stats", response_model=DashboardStats)
async def stats(admin: AdminService = Depends(get_admin)) -> DashboardStats:
    return await admin.stats()


# Orders


@router.get("/orders", response_model=List[OrderDetails])
async def list_orders(
    status: Optional[OrderStatus] = Query(None, description="Only orders in this status"),
    admin: AdminService = Depends(get_admin),
) -> List[OrderDetails]:
    """Return orders newest first, optionally filtered by status."""
    return await admin.list_orders(status)


@router.get("/orders/{order_id}", response_model=ReviewedOrder)
async def get_order(order_id: str, admin: AdminService = Depends(get_admin)) -> ReviewedOrder:
    return await admin.get_order(order_id)


@router.patch("/orders/{order_id}/status", response_model=Order)
async def set_order_status(order_id: str, body: StatusIn, admin: AdminService = Depends(get_admin)) -> Order:
    """Approve or reject a pending order."""
    return await admin.set_order_status(order_id, body.status)


# Events and tiers


@router.get("/events", response_model=List[Event])
async def list_events(admin: AdminService = Depends(get_admin)) -> List[Event]:
    return await admin.list_events()


@router.post("/events", response_model=Event, status_code=201)
async def create_event(body: EventInput, admin: AdminService = Depends(get_admin)) -> Event:
    return await admin.create_event(body)


@router.put("/events/{event_id}", response_model=Event)
async def update_event(event_id: str, body: EventInput, admin: AdminService = Depends(get_admin)) -> Event:
    return await admin.update_event(event_id, body)


@router.delete("/events/{event_id}", status_code=204)
async def delete_event(event_id: str, admin: AdminService = Depends(get_admin)) -> Response:
    await admin.delete_event(event_id)
    return Response(status_code=204)


@router.post("/events/{event_id}/tiers", response_model=TicketTier, status_code=201)
async def add_tier(event_id: str, body: TierInput, admin: AdminService = Depends(get_admin)) -> TicketTier:
    return await admin.add_tier(event_id, body)


@router.delete("/tiers/{tier_id}", status_code=204)
async def delete_tier(tier_id: str, admin: AdminService = Depends(get_admin)) -> Response:
    await admin.delete_tier(tier_id)
    return Response(status_code=204)


# Coupons


@router.get("/coupons", response_model=List[Coupon])
async def list_coupons(coupons: CouponService = Depends(get_coupons)) -> List[Coupon]:
    return await coupons.list_all()


@router.post("/coupons", response_model=Coupon, status_code=201)
async def create_coupon(body: CouponIn, coupons: CouponService = Depends(get_coupons)) -> Coupon:
    """Create a coupon; a random 8-character code is generated when none is given."""
    return await coupons.create(body.discount_percent, code=body.code, is_active=body.is_active)


@router.patch("/coupons/{coupon_id}", response_model=Coupon)
async def set_coupon_active(coupon_id: str, body: ActiveIn, coupons: CouponService = Depends(get_coupons)) -> Coupon:
    return await coupons.set_active(coupon_id, body.is_active)


@router.delete("/coupons/{coupon_id}", status_code=204)
async def delete_coupon(coupon_id: str, coupons: CouponService = Depends(get_coupons)) -> Response:
    await coupons.delete(coupon_id)
    return Response(status_code=204)


# Banks


@router.get("/banks", response_model=List[Bank])
async def list_banks(admin: AdminService = Depends(get_admin)) -> List[Bank]:
    return await admin.list_banks()


@router.post("/banks", response_model=Bank, status_code=201)
async def create_bank(body: BankInput, admin: AdminService = Depends(get_admin)) -> Bank:
    return await admin.create_bank(body)


@router.put("/banks/{bank_id}", response_model=Bank)
async def update_bank(bank_id: str, body: BankInput, admin: AdminService = Depends(get_admin)) -> Bank:
    return await admin.update_bank(bank_id, body)


@router.patch("/banks/{bank_id}", response_model=Bank)
async def set_bank_active(bank_id: str, body: ActiveIn, admin: AdminService = Depends(get_admin)) -> Bank:
    return await admin.set_bank_active(bank_id, body.is_active)


@router.delete("/banks/{bank_id}", status_code=204)
async def delete_bank(bank_id: str, admin: AdminService = Depends(get_admin)) -> Response:
    await admin.delete_bank(bank_id)
    return Response(status_code=204)
