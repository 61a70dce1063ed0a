"""
Seat map API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import Settings, get_settings
from ..middleware.error_handler import to_http_exception
from ..schemas.common import ErrorResponse
from ..schemas.seat import SeatMapResponse, VenueSeedRequest, VenueSeedResponse
from ..services.seat_service import SeatService
from ..utils.dependencies import get_current_identity, get_seat_service
from ..utils.exceptions import FreeSeatError

router = APIRouter(prefix="/seats", tags=["seats"])


@router.get("", response_model=SeatMapResponse)
async def get_seat_map(seat_service: SeatService = Depends(get_seat_service)):
    """
    Get the venue seat map with availability.

    The map may lag a just-committed reservation by a few seconds; the
    reservation itself always re-checks availability.
    """
    try:
        return await seat_service.get_seat_map()
    except FreeSeatError as e:
        raise to_http_exception(e)


@router.post(
    "/seed",
    response_model=VenueSeedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Only the organizer may seed the venue"},
        409: {"model": ErrorResponse, "description": "Venue already seeded"},
    },
)
async def seed_venue(
    request: VenueSeedRequest,
    identity: str = Depends(get_current_identity),
    seat_service: SeatService = Depends(get_seat_service),
    settings: Settings = Depends(get_settings),
):
    """One-time creation of the venue's seats (organizer only)."""
    if not settings.organizer_identity or identity != settings.organizer_identity:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error_code": "FORBIDDEN", "message": "Only the organizer may seed the venue"},
        )

    try:
        created = await seat_service.seed_venue(request.seat_ids)
    except FreeSeatError as e:
        raise to_http_exception(e)

    return VenueSeedResponse(seats_created=created)
