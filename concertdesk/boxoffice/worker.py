"""Celery tasks for the box office.

Contains the operator notification for new orders and the scheduled
exchange-rate refresh. Both bridge to the async services via asyncio and
log rather than raise on expected failures.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict

import httpx
from celery import shared_task

from boxoffice.services.rate_feed import RateFeedClient, RateFeedError
from boxoffice.services.supabase_client import SupabaseClient
from boxoffice.services.telegram import TelegramClient, format_new_order
from boxoffice.services.store import TicketStore
from boxoffice.utils.logger import logger


async def send_order_notification(order_id: str, store: TicketStore, telegram: TelegramClient) -> bool:
    """Resolve an order and post it to the operator chat."""
    order = await store.get_order(order_id)
    if order is None:
        logger.error("Order not found for notification", extra={"order_id": order_id})
        return False
    return await telegram.send_message(format_new_order(order))


async def refresh_rate(store: TicketStore, feed: RateFeedClient) -> Dict[str, Any]:
    try:
        rate = await feed.fetch_usd_rate()
    except RateFeedError as exc:
        logger.error("Rate feed returned no usable rate", extra={"error": str(exc)})
        return {"status": "skipped"}
    except httpx.HTTPError as exc:
        logger.error("Rate feed unreachable after retries", extra={"error": str(exc)})
        return {"status": "skipped"}
    stored = await store.insert_exchange_rate(rate, datetime.now(timezone.utc))
    return {"status": "ok", "usd_to_tl": str(stored.usd_to_tl)}


@shared_task(name="notify_new_order")
def notify_new_order(order_id: str) -> dict:
    """Send the "new order" operator message; never retried."""
    logger.info("Sending order notification", extra={"order_id": order_id})
    try:
        sent = asyncio.run(send_order_notification(order_id, SupabaseClient(), TelegramClient()))
    except Exception as exc:  # noqa: BLE001
        logger.error("Order notification failed", extra={"order_id": order_id, "error": str(exc)})
        sent = False
    return {"order_id": order_id, "sent": sent}


@shared_task(name="refresh_exchange_rate")
def refresh_exchange_rate() -> dict:
    """Fetch the current USD to TL rate and store it as the latest row."""
    logger.info("Refreshing exchange rate")
    return asyncio.run(refresh_rate(SupabaseClient(), RateFeedClient()))
