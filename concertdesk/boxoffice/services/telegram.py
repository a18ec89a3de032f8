"""Telegram Bot API client for operator notifications.

Delivery is best effort: missing credentials and API errors are logged and
never raised, since an order must not depend on the operator channel.
"""
from __future__ import annotations

import html
import os
from decimal import Decimal

import httpx

from boxoffice.models.order import OrderDetails
from boxoffice.utils.logger import logger

TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")


def _money(value: Decimal) -> str:
    return f"{Decimal(value):.2f}"


def _esc(value: object) -> str:
    return html.escape(str(value)) if value is not None else "N/A"


def format_new_order(order: OrderDetails) -> str:
    """Render the HTML message posted for a freshly placed order."""
    lines = [
        "🎫 <b>New order!</b>",
        "",
        f"🎵 <b>Event:</b> {_esc(order.event_title)}",
        f"🎟 <b>Tier:</b> {_esc(order.tier_name)}",
        f"📊 <b>Quantity:</b> {order.quantity}",
        "",
        f"💰 <b>Total:</b> ${_money(order.price_usd)} USD",
        f"💵 <b>In lira:</b> {_money(order.price_tl)} TL",
        f"📈 <b>Rate:</b> 1 USD = {_money(order.exchange_rate_used)} TL",
    ]
    if order.discount_applied:
        lines.append(f"🏷 <b>Discount:</b> {order.discount_applied}%")
    lines += [
        "",
        f"👤 <b>Buyer:</b> {_esc(order.buyer_name)} {_esc(order.buyer_surname)}",
        f"📧 <b>Email:</b> {_esc(order.buyer_email)}",
    ]
    if order.attendees:
        lines.append(f"👥 <b>Companions:</b> {_esc(', '.join(order.attendees))}")
    lines += [
        "",
        f"🏦 <b>Bank:</b> {_esc(order.bank_name)}",
        f"💳 <b>IBAN:</b> <code>{_esc(order.bank_iban)}</code>",
        "",
        "⏳ Status: awaiting review",
    ]
    return "\n".join(lines)


class TelegramClient:
    """Posts HTML messages to one operator chat."""

    def __init__(self, bot_token: str | None = None, chat_id: str | None = None) -> None:
        self._token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN")
        self._chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID")

    @property
    def configured(self) -> bool:
        return bool(self._token and self._chat_id)

    async def send_message(self, text: str) -> bool:
        if not self.configured:
            logger.error("Telegram credentials not configured")
            return False
        url = f"{TELEGRAM_API_BASE}/bot{self._token}/sendMessage"
        payload = {"chat_id": self._chat_id, "text": text, "parse_mode": "HTML"}
        try:
            async with httpx.AsyncClient(timeout=15) as client:
                resp = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Error sending Telegram message", extra={"error": str(exc)})
            return False
        if resp.is_error:
            logger.error("Telegram API error", extra={"status_code": resp.status_code, "body": resp.text})
            return False
        logger.info("Telegram message sent")
        return True
