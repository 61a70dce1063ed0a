"""
FastAPI routes for public order lookup and receipt resend.

Orders are looked up by exact id only; there is deliberately no listing
endpoint, and the owning identity is never returned.
"""

import logging

from fastapi import APIRouter, Depends

from ..cache import CacheKeyBuilder, CacheTTL, get_cache
from ..middleware.error_handler import to_http_exception
from ..schemas.common import ErrorResponse
from ..schemas.reservation import OrderLookupResponse, ResendResponse
from ..services.notification_service import NotificationService
from ..services.reservation_service import ReservationEngine
from ..utils.dependencies import get_notification_service, get_reservation_engine
from ..utils.exceptions import FreeSeatError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


@router.get(
    "/{order_id}",
    response_model=OrderLookupResponse,
    responses={404: {"model": ErrorResponse, "description": "Order not found"}},
)
async def get_order(
    order_id: str,
    engine: ReservationEngine = Depends(get_reservation_engine),
):
    """Look up a committed order by its id."""
    cache = get_cache()
    cache_key = CacheKeyBuilder.order_detail(order_id)

    cached_order = await cache.get(cache_key)
    if cached_order:
        return OrderLookupResponse(**cached_order)

    try:
        order = await engine.lookup(order_id)
    except FreeSeatError as e:
        raise to_http_exception(e)

    response = OrderLookupResponse.from_order(order)
    # Orders are immutable, so a cached copy never goes stale
    await cache.set(cache_key, response.model_dump(mode="json"), CacheTTL.ORDER_DETAIL)
    return response


@router.post(
    "/{order_id}/resend",
    response_model=ResendResponse,
    responses={404: {"model": ErrorResponse, "description": "Order not found"}},
)
async def resend_receipt(
    order_id: str,
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Send the receipt for an order again.

    Safe to call repeatedly: each call is one delivery attempt and never
    changes seats or orders.
    """
    try:
        email_sent = await notifications.resend(order_id)
    except FreeSeatError as e:
        raise to_http_exception(e)

    return ResendResponse(order_id=order_id, email_sent=email_sent)
