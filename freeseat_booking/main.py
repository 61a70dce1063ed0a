"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from freeseat_booking.config import settings
from freeseat_booking.api import api_router
from freeseat_booking.database import init_database, close_database, get_session_factory
from freeseat_booking.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from freeseat_booking.schemas.common import HealthStatus
from freeseat_booking.services.seat_service import SeatService
from freeseat_booking.utils.exceptions import VenueAlreadySeededError
from freeseat_booking.utils.logging_config import setup_logging

APP_VERSION = "1.0.0"

setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file="logs/freeseat.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production"
)

logger = logging.getLogger(__name__)


async def seed_venue_if_empty() -> None:
    """Create the default venue map on first start."""
    seat_service = SeatService(get_session_factory(), settings=settings)
    if await seat_service.is_seeded():
        return
    try:
        created = await seat_service.seed_venue()
        logger.info(f"Seeded default venue with {created} seats")
    except VenueAlreadySeededError:
        # Another worker seeded it first
        logger.info("Venue already seeded by another process")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting FreeSeat booking engine")
    await init_database()
    if settings.seed_venue_on_startup:
        await seed_venue_if_empty()
    yield
    logger.info("Shutting down FreeSeat booking engine")
    await close_database()


app = FastAPI(
    title="FreeSeat Booking API",
    description="""
    ## FreeSeat Booking

    Seat reservations for a free event with a fixed venue map.

    ### Key Features

    * **Seat Map**: Live availability for every seat in the venue
    * **Reservations**: All-or-nothing seat grants with a per-visitor seat limit
    * **Guest Names**: Optional names printed on the receipt for each seat
    * **Receipts**: Emailed after the reservation commits, resendable at any time

    ### Authentication

    Visitors are verified by the identity provider in front of this API,
    which forwards the verified identity in the `X-Authenticated-Identity`
    header. Order lookup and resend need only the order id.

    ### Error Handling

    ```json
    {
      "detail": {
        "error_code": "SEATS_UNAVAILABLE",
        "message": "Seats unavailable: A1",
        "details": {"conflicting_ids": ["A1"]}
      }
    }
    ```
    """,
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "seats", "description": "Venue seat map"},
        {"name": "reservations", "description": "Seat reservation and quota"},
        {"name": "orders", "description": "Order lookup and receipt resend"},
        {"name": "health", "description": "Liveness"},
    ],
    lifespan=lifespan,
)

# Middleware stack (last added runs first)
app.add_middleware(
    LoggingMiddleware,
    log_requests=settings.enable_request_logging,
    log_responses=settings.enable_request_logging,
)

app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

if settings.debug:
    cors_origins = ["*"]
    cors_allow_credentials = False  # Cannot use credentials with wildcard origins
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    """Basic information about the API."""
    return {
        "message": "FreeSeat Booking API",
        "version": APP_VERSION,
        "docs_url": "/docs",
        "event": settings.event_name,
        "show_time": settings.show_time,
    }


@app.get("/health", tags=["health"], response_model=HealthStatus)
async def health_check():
    """Liveness check for uptime monitoring."""
    return HealthStatus(
        status="healthy",
        service="freeseat-booking",
        version=APP_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
