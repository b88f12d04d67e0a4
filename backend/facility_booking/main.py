"""
Facility Booking API - Main Application Entry Point

Half-hour lane slots and group sessions with:
- Capacity enforcement that holds under concurrent reservations
- All-or-nothing reservation of slot ranges
- Redis caching of availability views with invalidation on every booking
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from facility_booking.core.config import get_settings
from facility_booking.core.exceptions import (
    AlreadyBooked,
    BookingError,
    Forbidden,
    Full,
    InvalidRange,
    NotAuthenticated,
    NotFound,
    StorageError,
)
from facility_booking.core.logging import setup_logging, get_logger
from facility_booking.core.metrics import metrics_endpoint
from facility_booking.api.router import api_router
from facility_booking.api.middleware import RequestLoggingMiddleware
from facility_booking.db.session import AsyncSessionLocal
from facility_booking.infrastructure.sql_store import SqlReservationStore
from facility_booking.services.cache_service import get_redis, close_redis, get_cache_stats
from facility_booking.services.catalog_service import ResourceCatalog

settings = get_settings()

OUTCOME_STATUS = {
    NotFound: 404,
    AlreadyBooked: 409,
    Full: 409,
    InvalidRange: 422,
    StorageError: 503,
    NotAuthenticated: 401,
    Forbidden: 403,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timezone=settings.FACILITY_TIMEZONE,
    )

    try:
        async with AsyncSessionLocal() as db:
            await ResourceCatalog(SqlReservationStore(db)).ensure_default_resources()
    except StorageError as e:
        # Lane listing and grid rendering retry the materialization per request
        logger.warning("lanes_not_ready", error=str(e))

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Lane and group session booking with capacity-safe concurrent reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = OUTCOME_STATUS.get(type(exc), 400)
    body = {"outcome": exc.outcome, "detail": exc.message}
    if exc.slot_start is not None:
        body["slot_start"] = exc.slot_start.isoformat()
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    if exc.retryable:
        headers = {"Retry-After": "1"}
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
