"""Catalog router: upcoming events and tier availability."""
from __future__ import annotations

from typing import List
from fastapi import APIRouter, Depends

from boxoffice.dependencies import get_catalog
from boxoffice.services.catalog import CatalogService, EventDetail, EventSummary

router = APIRouter()


@router.get("/", response_model=List[EventSummary])
async def list_events(catalog: CatalogService = Depends(get_catalog)) -> List[EventSummary]:
    """Return active upcoming events, soonest first."""
    return await catalog.list_upcoming()


@router.get("/{event_id}", response_model=EventDetail)
async def get_event(event_id: str, catalog: CatalogService = Depends(get_catalog)) -> EventDetail:
    """Return one active event with its tiers and remaining tickets."""
    return await catalog.get_event(event_id)
