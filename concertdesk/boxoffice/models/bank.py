"""Pydantic model for bank accounts buyers transfer to."""
from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel


class Bank(BaseModel):
    id: str
    bank_name: str
    account_holder_name: str
    iban: str
    is_active: bool = True
    created_at: datetime | None = None
