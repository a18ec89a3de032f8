"""Coupon lookup for checkout and coupon management for the back office."""
from __future__ import annotations

import secrets
from typing import List, Optional

from pydantic import BaseModel

from boxoffice.errors import ErrorCode, NotFoundError, ValidationError
from boxoffice.models.coupon import Coupon
from boxoffice.services.store import TicketStore
from boxoffice.utils.logger import logger

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8


class CouponCheck(BaseModel):
    """Outcome of validating a code; ``valid`` is None when no code was given."""

    code: str
    valid: Optional[bool] = None
    discount_percent: int = 0
    coupon_id: Optional[str] = None


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class CouponService:
    def __init__(self, store: TicketStore) -> None:
        self._store = store

    async def validate(self, code: Optional[str]) -> CouponCheck:
        """Check a buyer-supplied code. Never raises for a bad code."""
        normalized = normalize_code(code)
        if not normalized:
            return CouponCheck(code="")
        try:
            coupon = await self._store.find_coupon(normalized)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Coupon lookup failed", extra={"code": normalized, "error": str(exc)})
            coupon = None
        if coupon is None or not coupon.redeemable:
            return CouponCheck(code=normalized, valid=False)
        return CouponCheck(
            code=normalized,
            valid=True,
            discount_percent=coupon.discount_percent,
            coupon_id=coupon.id,
        )

    async def list_all(self) -> List[Coupon]:
        return await self._store.list_coupons()

    async def create(self, discount_percent: int, code: Optional[str] = None, is_active: bool = True) -> Coupon:
        if not 1 <= discount_percent <= 100:
            raise ValidationError({"discount_percent": "Discount must be between 1 and 100"})
        normalized = normalize_code(code) or generate_code()
        coupon = await self._store.insert_coupon(
            {"code": normalized, "discount_percent": discount_percent, "is_active": is_active}
        )
        logger.info("Coupon created", extra={"coupon_id": coupon.id})
        return coupon

    async def set_active(self, coupon_id: str, is_active: bool) -> Coupon:
        coupon = await self._store.set_coupon_active(coupon_id, is_active)
        if coupon is None:
            raise NotFoundError(ErrorCode.COUPON_NOT_FOUND, coupon_id)
        return coupon

    async def delete(self, coupon_id: str) -> None:
        if not await self._store.delete_coupon(coupon_id):
            raise NotFoundError(ErrorCode.COUPON_NOT_FOUND, coupon_id)
