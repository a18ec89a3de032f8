"""FastAPI dependencies: store, services and the admin gate.

Tests swap ``get_store``, ``get_notifier`` and ``require_admin`` through
``app.dependency_overrides``.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable

from fastapi import Depends, Header, HTTPException

from boxoffice.celery_app import celery_app  # noqa: F401 binds shared tasks to the Redis broker
from boxoffice.services.admin import AdminService
from boxoffice.services.catalog import CatalogService
from boxoffice.services.checkout import CheckoutService
from boxoffice.services.coupons import CouponService
from boxoffice.services.store import IdentityProvider, TicketStore
from boxoffice.services.supabase_client import SupabaseClient
from boxoffice.utils.logger import logger
from boxoffice.worker import notify_new_order

ADMIN_ROLE = "admin"


@lru_cache()
def _supabase() -> SupabaseClient:
    return SupabaseClient()


def get_store() -> TicketStore:
    return _supabase()


def get_identity() -> IdentityProvider:
    return _supabase()


def _enqueue_notification(order_id: str) -> Any:
    return notify_new_order.apply_async(args=[order_id], retry=False)


def get_notifier() -> Callable[[str], Any]:
    return _enqueue_notification


def get_catalog(store: TicketStore = Depends(get_store)) -> CatalogService:
    return CatalogService(store)


def get_checkout(
    store: TicketStore = Depends(get_store),
    notify: Callable[[str], Any] = Depends(get_notifier),
) -> CheckoutService:
    return CheckoutService(store, notify=notify)


def get_coupons(store: TicketStore = Depends(get_store)) -> CouponService:
    return CouponService(store)


def get_admin(store: TicketStore = Depends(get_store)) -> AdminService:
    return AdminService(store)


async def require_admin(
    authorization: str | None = Header(default=None),
    identity: IdentityProvider = Depends(get_identity),
) -> str:
    """Return the caller's user id if the bearer token belongs to an admin."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = await identity.user_id_for_token(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not await identity.has_role(user_id, ADMIN_ROLE):
        logger.warning("Non-admin tried the back office", extra={"user_id": user_id})
        raise HTTPException(status_code=403, detail="Admin access required")
    return user_id
