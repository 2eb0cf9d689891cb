"""Affiliate engine API - FastAPI application."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from affiliate_engine.logging_config import setup_logging
setup_logging()

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from affiliate_engine.api.affiliate import router as affiliate_router, set_manager
from affiliate_engine.db.engine import async_session, engine, init_db
from affiliate_engine.errors import (
    AffiliateError,
    CommissionNotFound,
    InvalidStateTransition,
    StorageUnavailable,
    ValidationError,
)
from affiliate_engine.middleware.request_id import RequestIDMiddleware
from affiliate_engine.services.orchestrator import AffiliateManager
from affiliate_engine.services.scheduler import start_scheduler, stop_scheduler
from config.settings import settings

logger = logging.getLogger(__name__)

# ── Sentry Error Tracking ────────────────────────
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.WARNING, event_level=logging.ERROR),
        ],
        # Click payloads carry IPs and user agents
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate config, ensure tables, wire the manager, start inventory sync."""
    from affiliate_engine.startup_checks import validate_settings
    validate_settings(settings)

    await init_db(engine)
    logger.info("Database tables ready")

    manager = AffiliateManager.from_settings(async_session, settings)
    set_manager(manager)

    if settings.INVENTORY_SYNC_ENABLED:
        start_scheduler(
            manager.monitor,
            full_sync_minutes=settings.INVENTORY_FULL_SYNC_MINUTES,
            price_check_minutes=settings.INVENTORY_PRICE_CHECK_MINUTES,
        )

    yield

    logger.info("Shutting down - waiting for inventory sync...")
    await stop_scheduler()
    set_manager(None)
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Affiliate Engine API",
    version="0.1.0",
    description="Click attribution, commissions, vendor inventory and recommendations",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

app.include_router(affiliate_router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "affiliate-engine"}


# ── Error envelope ───────────────────────────────

_STATUS = {
    ValidationError: 400,
    CommissionNotFound: 404,
    InvalidStateTransition: 409,
    StorageUnavailable: 503,
}

_CODES = {
    ValidationError: "validation_error",
    CommissionNotFound: "not_found",
    InvalidStateTransition: "invalid_state_transition",
    StorageUnavailable: "storage_unavailable",
}


@app.exception_handler(AffiliateError)
async def affiliate_error_handler(request: Request, exc: AffiliateError):
    for cls, status in _STATUS.items():
        if isinstance(exc, cls):
            if status >= 500:
                logger.error(f"{request.method} {request.url.path}: {exc}")
            return JSONResponse(status_code=status, content={
                "error": _CODES[cls],
                "message": str(exc),
            })
    logger.exception("Unhandled affiliate error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={
        "error": "internal_error",
        "message": "Something went wrong. Please try again.",
    })


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Structured validation errors instead of raw Pydantic output."""
    errors = []
    for err in exc.errors():
        field = " → ".join(str(loc) for loc in err["loc"]) if err.get("loc") else "unknown"
        errors.append({"field": field, "message": err["msg"]})
    return JSONResponse(status_code=422, content={
        "error": "validation_error",
        "message": "Invalid request data",
        "details": errors,
    })


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={
        "error": exc.detail if isinstance(exc.detail, str) else "error",
        "message": exc.detail,
    })


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Catch-all - never leak stack traces."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={
        "error": "internal_error",
        "message": "Something went wrong. Please try again.",
    })
