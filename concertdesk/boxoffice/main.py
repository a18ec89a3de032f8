"""FastAPI entrypoint for the ConcertDesk box office.

Exposes health check, the public catalog and checkout, and the admin back
office. Business logic lives in the services modules; domain errors are
mapped to HTTP responses here.
"""
from __future__ import annotations

import os
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from boxoffice.errors import DomainError, ErrorCode, ValidationError
from boxoffice.utils.logger import logger
from boxoffice.routers.admin import router as admin_router
from boxoffice.routers.catalog import router as catalog_router
from boxoffice.routers.checkout import router as checkout_router

APP_NAME = os.getenv("APP_NAME", "concertdesk-boxoffice")

_STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 422,
    ErrorCode.RECEIPT_REQUIRED: 422,
    ErrorCode.EVENT_NOT_FOUND: 404,
    ErrorCode.TIER_NOT_FOUND: 404,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.COUPON_NOT_FOUND: 404,
    ErrorCode.BANK_NOT_FOUND: 404,
    ErrorCode.SOLD_OUT: 409,
    ErrorCode.QUANTITY_UNAVAILABLE: 409,
    ErrorCode.COUPON_UNAVAILABLE: 409,
    ErrorCode.DUPLICATE_COUPON: 409,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.NO_ACTIVE_BANK: 503,
    ErrorCode.UPLOAD_FAILED: 503,
    ErrorCode.STORE_UNAVAILABLE: 503,
}

app = FastAPI(title="ConcertDesk Box Office", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = _STATUS_BY_CODE.get(exc.code, 400)
    if status_code >= 500:
        logger.error("Request failed", extra={"path": request.url.path, "code": exc.code.value})
    body = {"code": exc.code.value, "detail": exc.message}
    if isinstance(exc, ValidationError):
        body["fields"] = exc.fields
    return JSONResponse(status_code=status_code, content=body)


@app.get("/health")
async def health() -> dict:
    """Simple health endpoint to verify service readiness."""
    logger.debug("Health check requested")
    return {
        "status": "ok",
        "app": APP_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Routers
app.include_router(catalog_router, prefix="/events", tags=["catalog"])
app.include_router(checkout_router, prefix="/checkout", tags=["checkout"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])
