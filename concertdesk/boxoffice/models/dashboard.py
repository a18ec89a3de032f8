"""Pydantic model for back office dashboard figures."""
from __future__ import annotations

from decimal import Decimal
from pydantic import BaseModel


class DashboardStats(BaseModel):
    events_count: int
    total_orders: int
    pending_orders: int
    total_revenue_usd: Decimal
