"""Pydantic models for the USD to TL exchange rate."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel


class ExchangeRate(BaseModel):
    id: str | None = None
    usd_to_tl: Decimal
    fetched_at: datetime


class RateQuote(BaseModel):
    """Rate actually applied to a checkout; ``is_fallback`` marks the default."""

    usd_to_tl: Decimal
    fetched_at: datetime | None = None
    is_fallback: bool = False
