"""
FastAPI dependencies for identity and service wiring.
"""

from typing import Optional

from fastapi import Depends, Request

from ..config import Settings, get_settings
from ..database import get_session_factory
from ..middleware.error_handler import to_http_exception
from ..services.notification_service import NotificationService
from ..services.reservation_service import ReservationEngine
from ..services.seat_service import SeatService
from .exceptions import AuthenticationError
from .logging_config import log_security_event


async def get_current_identity(
    request: Request,
    settings: Settings = Depends(get_settings)
) -> str:
    """
    Get the verified identity the upstream identity provider attached to the request.

    Raises:
        HTTPException: 401 if the identity header is missing or blank
    """
    identity: Optional[str] = request.headers.get(settings.identity_header)
    if not identity or not identity.strip():
        log_security_event(
            "missing_identity",
            {"path": request.url.path, "header": settings.identity_header}
        )
        raise to_http_exception(AuthenticationError())
    return identity.strip()


def get_reservation_engine(settings: Settings = Depends(get_settings)) -> ReservationEngine:
    """Get the reservation engine bound to the application's session factory."""
    return ReservationEngine(get_session_factory(), settings=settings)


def get_notification_service(
    engine: ReservationEngine = Depends(get_reservation_engine),
    settings: Settings = Depends(get_settings)
) -> NotificationService:
    """Get the receipt dispatcher for the current engine."""
    return NotificationService(engine, settings=settings)


def get_seat_service(settings: Settings = Depends(get_settings)) -> SeatService:
    """Get the seat service bound to the application's session factory."""
    return SeatService(get_session_factory(), settings=settings)
