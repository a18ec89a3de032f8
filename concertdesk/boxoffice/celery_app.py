"""Celery configuration for the box office.

Provides the Celery application instance configured with a Redis broker and
result backend, imported by both the FastAPI app and the worker process.
The beat schedule keeps the exchange rate younger than the checkout's
freshness window.
"""
from __future__ import annotations

import os
from celery import Celery

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RATE_REFRESH_SECONDS = int(os.getenv("RATE_REFRESH_SECONDS", "600"))

celery_app = Celery(
    "concertdesk",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["boxoffice.worker"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_ignore_result=True,
    beat_schedule={
        "refresh-exchange-rate": {
            "task": "refresh_exchange_rate",
            "schedule": float(RATE_REFRESH_SECONDS),
        },
    },
)
