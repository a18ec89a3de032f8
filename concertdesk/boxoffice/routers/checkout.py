"""Checkout router: price quotes, coupon checks and order placement."""
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field

from boxoffice.dependencies import get_checkout, get_coupons
from boxoffice.services.checkout import CheckoutQuote, CheckoutRequest, CheckoutService, ReceiptUpload
from boxoffice.services.coupons import CouponCheck, CouponService
from boxoffice.services.pricing import format_amount

router = APIRouter()


class QuoteIn(BaseModel):
    event_id: str
    tier_id: str
    quantity: int = Field(1, ge=1)
    coupon_code: Optional[str] = None


class CouponIn(BaseModel):
    code: str


class BankOut(BaseModel):
    bank_name: str
    account_holder_name: str
    iban: str


class OrderPlaced(BaseModel):
    order_id: str
    status: str
    quantity: int
    price_usd: Decimal
    price_tl: Decimal
    exchange_rate_used: Decimal
    discount_applied: int
    amount_due: str


@router.post("/quote", response_model=CheckoutQuote)
async def quote(body: QuoteIn, checkout: CheckoutService = Depends(get_checkout)) -> CheckoutQuote:
    """Price a tier selection, with the coupon applied if it is valid."""
    return await checkout.quote(body.event_id, body.tier_id, body.quantity, body.coupon_code)


@router.post("/coupon", response_model=CouponCheck)
async def check_coupon(body: CouponIn, coupons: CouponService = Depends(get_coupons)) -> CouponCheck:
    """Validate a coupon code; an unknown or used code is reported, not rejected."""
    return await coupons.validate(body.code)


@router.get("/bank", response_model=BankOut)
async def payment_bank(checkout: CheckoutService = Depends(get_checkout)) -> BankOut:
    """Return the account the buyer should transfer the amount to."""
    bank = await checkout.payment_bank()
    return BankOut(bank_name=bank.bank_name, account_holder_name=bank.account_holder_name, iban=bank.iban)


@router.post("/orders", response_model=OrderPlaced, status_code=201)
async def place_order(
    event_id: str = Form(...),
    tier_id: str = Form(...),
    quantity: int = Form(1),
    buyer_email: str = Form(""),
    buyer_name: str = Form(""),
    buyer_surname: str = Form(""),
    coupon_code: Optional[str] = Form(None),
    attendees: List[str] = Form(default=[]),
    receipt: Optional[UploadFile] = File(None),
    checkout: CheckoutService = Depends(get_checkout),
) -> OrderPlaced:
    """Place a pending order backed by an uploaded transfer receipt."""
    request = CheckoutRequest.parse(
        event_id=event_id,
        tier_id=tier_id,
        quantity=quantity,
        buyer_email=buyer_email,
        buyer_name=buyer_name,
        buyer_surname=buyer_surname,
        coupon_code=coupon_code,
        attendees=attendees,
    )
    upload = None
    if receipt is not None:
        upload = ReceiptUpload(
            filename=receipt.filename or "receipt",
            content=await receipt.read(),
            content_type=receipt.content_type,
        )
    order = await checkout.create_order(request, upload)
    return OrderPlaced(
        order_id=order.id,
        status=order.status.value,
        quantity=order.quantity,
        price_usd=order.price_usd,
        price_tl=order.price_tl,
        exchange_rate_used=order.exchange_rate_used,
        discount_applied=order.discount_applied or 0,
        amount_due=format_amount(order.price_tl, "TL"),
    )
