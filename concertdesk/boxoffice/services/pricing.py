"""Checkout pricing and exchange-rate resolution.

``compute_price`` is a pure function of its inputs. Amounts are kept as
``Decimal`` and are not rounded; ``format_amount`` rounds for display only.
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from pydantic import BaseModel

from boxoffice.models.exchange_rate import ExchangeRate, RateQuote
from boxoffice.services.store import TicketStore
from boxoffice.utils.logger import logger

DEFAULT_USD_TO_TL = Decimal(os.getenv("DEFAULT_USD_TO_TL", "34.5"))
RATE_MAX_AGE = timedelta(seconds=int(os.getenv("EXCHANGE_RATE_MAX_AGE_SECONDS", "3600")))

Number = Union[Decimal, int, float, str]


class PriceBreakdown(BaseModel):
    unit_price_usd: Decimal
    quantity: int
    discount_percent: int
    price_usd: Decimal
    discount_amount_usd: Decimal
    final_price_usd: Decimal
    final_price_tl: Decimal
    exchange_rate: Optional[Decimal] = None


def _dec(value: Number) -> Decimal:
    # str() first so floats like 34.5 keep their printed value
    return value if isinstance(value, Decimal) else Decimal(str(value))


def compute_price(
    unit_price_usd: Number,
    quantity: int,
    discount_percent: Number = 0,
    exchange_rate: Optional[Number] = None,
) -> PriceBreakdown:
    """Compute the checkout total for ``quantity`` tickets of one tier.

    Raises ValueError only for inputs outside the legal ranges (negative
    price, quantity below 1, discount outside 0-100). A missing rate yields
    a TL total of zero.
    """
    unit = _dec(unit_price_usd)
    discount = _dec(discount_percent)
    if unit < 0:
        raise ValueError("unit price cannot be negative")
    if quantity < 1:
        raise ValueError("quantity must be at least 1")
    if not Decimal(0) <= discount <= Decimal(100):
        raise ValueError("discount must be between 0 and 100")

    price_usd = unit * quantity
    discount_amount = price_usd * discount / Decimal(100)
    final_usd = price_usd - discount_amount
    rate = _dec(exchange_rate) if exchange_rate is not None else None
    final_tl = final_usd * rate if rate is not None else Decimal(0)

    return PriceBreakdown(
        unit_price_usd=unit,
        quantity=quantity,
        discount_percent=int(discount),
        price_usd=price_usd,
        discount_amount_usd=discount_amount,
        final_price_usd=final_usd,
        final_price_tl=final_tl,
        exchange_rate=rate,
    )


def resolve_rate(latest: Optional[ExchangeRate], now: Optional[datetime] = None) -> RateQuote:
    """Use ``latest`` if it is younger than the freshness window, else the default."""
    now = now or datetime.now(timezone.utc)
    if latest is not None:
        fetched_at = latest.fetched_at
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        if now - fetched_at < RATE_MAX_AGE:
            return RateQuote(usd_to_tl=latest.usd_to_tl, fetched_at=fetched_at)
        logger.info("Exchange rate is stale, using default", extra={"fetched_at": fetched_at.isoformat()})
    return RateQuote(usd_to_tl=DEFAULT_USD_TO_TL, fetched_at=now, is_fallback=True)


async def current_rate(store: TicketStore, now: Optional[datetime] = None) -> RateQuote:
    """Read-through lookup of the USD to TL rate; never raises."""
    try:
        latest = await store.latest_exchange_rate()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to read exchange rate", extra={"error": str(exc)})
        latest = None
    return resolve_rate(latest, now)


def format_amount(amount: Number, currency: str = "TL") -> str:
    """Round to a whole unit for display, e.g. ``6,900 TL``."""
    whole = _dec(amount).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return f"{whole:,} {currency}"
