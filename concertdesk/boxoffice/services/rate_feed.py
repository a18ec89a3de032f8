"""USD to TL rate feed client with retries.

Reads a public JSON feed shaped like ``{"rates": {"TRY": 34.2, ...}}``.
"""
from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation
from time import monotonic
from typing import Any, Dict

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from boxoffice.utils.logger import logger

EXCHANGE_RATE_API_URL = os.getenv("EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6/latest/USD")
LOCAL_CURRENCY_CODE = os.getenv("LOCAL_CURRENCY_CODE", "TRY")


class RateFeedError(Exception):
    """The feed answered, but without a usable rate."""


class RateFeedClient:
    def __init__(self, url: str | None = None, currency: str | None = None) -> None:
        self._url = url or EXCHANGE_RATE_API_URL
        self._currency = currency or LOCAL_CURRENCY_CODE

    @retry(
        retry=retry_if_exception_type(httpx.HTTPError),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _get(self) -> Dict[str, Any]:
        start = monotonic()
        async with httpx.AsyncClient(timeout=30) as client:
            resp = await client.get(self._url)
            logger.debug(
                "Rate feed responded",
                extra={"status_code": resp.status_code, "elapsed": round(monotonic() - start, 3)},
            )
            resp.raise_for_status()
            return resp.json()

    async def fetch_usd_rate(self) -> Decimal:
        """Return how many units of the local currency one USD buys."""
        data = await self._get()
        raw = (data.get("rates") or {}).get(self._currency)
        try:
            rate = Decimal(str(raw))
        except (InvalidOperation, ValueError) as exc:
            raise RateFeedError(f"no {self._currency} rate in feed") from exc
        if not rate.is_finite() or rate <= 0:
            raise RateFeedError(f"unusable {self._currency} rate: {raw}")
        return rate
