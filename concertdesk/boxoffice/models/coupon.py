"""Pydantic model for discount coupons."""
from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel


class Coupon(BaseModel):
    id: str
    code: str
    discount_percent: int
    is_active: bool = True
    is_used: bool = False
    used_at: datetime | None = None
    used_by_order_id: str | None = None
    created_at: datetime | None = None

    @property
    def redeemable(self) -> bool:
        return self.is_active and not self.is_used
