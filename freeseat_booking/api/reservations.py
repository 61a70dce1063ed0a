"""
FastAPI routes for seat reservations.
"""

import logging

from fastapi import APIRouter, Depends, status

from ..middleware.error_handler import to_http_exception
from ..schemas.common import ErrorResponse
from ..schemas.reservation import QuotaResponse, ReservationRequest, ReservationResponse
from ..services.notification_service import NotificationService
from ..services.reservation_service import ReservationEngine
from ..utils.dependencies import (
    get_current_identity,
    get_notification_service,
    get_reservation_engine,
)
from ..utils.exceptions import FreeSeatError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed request or contact refused"},
        401: {"model": ErrorResponse, "description": "No verified identity"},
        409: {"model": ErrorResponse, "description": "Quota exceeded or seats unavailable"},
        503: {"model": ErrorResponse, "description": "Storage unavailable, retry later"},
    },
)
async def create_reservation(
    request: ReservationRequest,
    identity: str = Depends(get_current_identity),
    engine: ReservationEngine = Depends(get_reservation_engine),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Reserve seats for the signed-in visitor.

    All requested seats are granted together or not at all. The receipt is
    emailed after the order commits; `email_sent` reports whether that
    delivery succeeded, and a failed delivery never cancels the order.
    """
    try:
        order = await engine.reserve(
            identity=identity,
            contact_email=request.contact_email,
            seat_ids=request.seats,
            guests=request.guest_pairs(),
            affiliation_tag=request.affiliation,
            organizer_flag=request.organizer,
        )
    except FreeSeatError as e:
        raise to_http_exception(e)

    email_sent = await notifications.dispatch(order)
    if not email_sent:
        logger.warning(f"Order {order.order_id} committed but receipt delivery failed")

    return ReservationResponse.from_order(order, email_sent=email_sent)


@router.get("/quota", response_model=QuotaResponse)
async def get_my_quota(
    identity: str = Depends(get_current_identity),
    engine: ReservationEngine = Depends(get_reservation_engine),
):
    """Seats the signed-in visitor has reserved so far and how many remain."""
    try:
        reserved = await engine.reserved_seat_count(identity)
        remaining = await engine.remaining_quota(identity)
    except FreeSeatError as e:
        raise to_http_exception(e)

    return QuotaResponse(
        seats_reserved=reserved,
        quota=None if remaining is None else engine.quota_max,
        remaining=remaining,
    )
