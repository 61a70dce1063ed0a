"""
Seat service for the fixed venue map: one-time seeding and the seat map read.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..cache import CacheKeyBuilder, CacheTTL, CacheInvalidator, get_cache
from ..config import Settings, get_settings
from ..models.order import Order
from ..models.seat import Seat, SeatStatus
from ..schemas.seat import SeatMapResponse, SeatResponse
from ..utils.db_errors import translate_storage_error
from ..utils.exceptions import InternalError, InvalidRequestError, VenueAlreadySeededError
from ..utils.retry import retry_on_storage_error

logger = logging.getLogger(__name__)

SEAT_ID_PATTERN = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")


def generate_venue_map(rows: str, seats_per_row: int) -> List[str]:
    """Seat ids for a rectangular venue, e.g. rows "AB" x 2 gives A1, A2, B1, B2."""
    return [f"{row}{number}" for row in rows for number in range(1, seats_per_row + 1)]


def parse_seat_id(seat_id: str) -> tuple:
    """Split ``A12`` into ``("A", 12)``."""
    match = SEAT_ID_PATTERN.match(seat_id)
    if not match:
        raise InvalidRequestError(f"Malformed seat id: {seat_id!r}", field="seat_ids")
    return match.group(1), int(match.group(2))


class SeatService:
    """Service class for venue seat operations."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.cache = get_cache()

    async def seed_venue(self, seat_ids: Optional[Sequence[str]] = None) -> int:
        """
        Create the venue's seats, all available.

        Seeding is one-time: it is refused once any seat or order exists, so a
        sold seat can never be reset to available by re-seeding.

        Args:
            seat_ids: Explicit seat ids; the configured rows x seats map is used when omitted

        Returns:
            Number of seats created

        Raises:
            InvalidRequestError: Malformed or duplicate seat ids
            VenueAlreadySeededError: The inventory already exists
        """
        if seat_ids is None:
            seat_ids = generate_venue_map(self.settings.venue_rows, self.settings.seats_per_row)

        normalized = [str(seat_id).strip().upper() for seat_id in seat_ids]
        if not normalized:
            raise InvalidRequestError("At least one seat is required to seed a venue", field="seat_ids")
        if len(set(normalized)) != len(normalized):
            raise InvalidRequestError("Duplicate seat ids in venue map", field="seat_ids")
        parsed = [(seat_id, *parse_seat_id(seat_id)) for seat_id in normalized]

        async with self.session_factory() as session:
            try:
                async with session.begin():
                    seat_count = await session.scalar(select(func.count(Seat.seat_id)))
                    order_count = await session.scalar(select(func.count(Order.order_id)))
                    if seat_count or order_count:
                        raise VenueAlreadySeededError(seat_count or 0, order_count or 0)

                    session.add_all([
                        Seat(seat_id=seat_id, row=row, number=number, status=SeatStatus.AVAILABLE)
                        for seat_id, row, number in parsed
                    ])
            except SQLAlchemyError as e:
                error = translate_storage_error(e, "venue seeding")
                if isinstance(error, InternalError):
                    raise error from e
                # A concurrent seeder won
                raise VenueAlreadySeededError(len(parsed), 0) from e

        await CacheInvalidator.invalidate_seat_caches()
        logger.info(f"Seeded venue with {len(parsed)} seats")
        return len(parsed)

    async def is_seeded(self) -> bool:
        async with self.session_factory() as session:
            count = await session.scalar(select(func.count(Seat.seat_id)))
        return bool(count)

    @retry_on_storage_error()
    async def get_seat_map(self) -> SeatMapResponse:
        """
        Get the seat map grouped by row, with caching.

        The map is advisory for display; reservations re-check availability
        inside their own transaction.
        """
        cache_key = CacheKeyBuilder.seat_map()
        cached_seat_map = await self.cache.get(cache_key)
        if cached_seat_map:
            return SeatMapResponse(**cached_seat_map)

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(Seat).order_by(Seat.row, Seat.number)
                )
                seats = result.scalars().all()
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Storage failure reading seat map: {e}")
                raise InternalError("Storage failure reading seat map") from e

        rows: Dict[str, List[SeatResponse]] = {}
        for seat in seats:
            rows.setdefault(seat.row, []).append(
                SeatResponse(
                    seat_id=seat.seat_id,
                    row=seat.row,
                    number=seat.number,
                    status=seat.status.value,
                    is_available=seat.is_available,
                )
            )

        available_seats = sum(1 for seat in seats if seat.is_available)
        seat_map_response = SeatMapResponse(
            rows=rows,
            total_seats=len(seats),
            available_seats=available_seats,
            sold_seats=len(seats) - available_seats,
        )

        await self.cache.set(cache_key, seat_map_response.model_dump(), CacheTTL.SEAT_MAP)
        return seat_map_response
