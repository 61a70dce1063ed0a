import pytest

from freeseat_booking.services.seat_service import SeatService, generate_venue_map, parse_seat_id
from freeseat_booking.utils.exceptions import InvalidRequestError, VenueAlreadySeededError


def test_generate_venue_map():
    assert generate_venue_map("AB", 2) == ["A1", "A2", "B1", "B2"]
    assert len(generate_venue_map("ABCDEFGHIJ", 25)) == 250


def test_parse_seat_id():
    assert parse_seat_id("A12") == ("A", 12)
    with pytest.raises(InvalidRequestError):
        parse_seat_id("A0")
    with pytest.raises(InvalidRequestError):
        parse_seat_id("12A")


@pytest.mark.asyncio
async def test_seeded_map_is_all_available(seat_service):
    seat_map = await seat_service.get_seat_map()

    assert seat_map.total_seats == 10
    assert seat_map.available_seats == 10
    assert seat_map.sold_seats == 0
    assert list(seat_map.rows) == ["A", "B"]
    assert [seat.seat_id for seat in seat_map.rows["A"]] == ["A1", "A2", "A3", "A4", "A5"]


@pytest.mark.asyncio
async def test_reseeding_is_refused(seat_service):
    with pytest.raises(VenueAlreadySeededError):
        await seat_service.seed_venue()


@pytest.mark.asyncio
async def test_seed_explicit_seat_list(session_factory, test_settings):
    service = SeatService(session_factory, settings=test_settings)

    assert not await service.is_seeded()
    assert await service.seed_venue(["a1", "A2", "C10"]) == 3
    assert await service.is_seeded()

    seat_map = await service.get_seat_map()
    assert [seat.seat_id for seat in seat_map.rows["C"]] == ["C10"]


@pytest.mark.asyncio
async def test_seed_rejects_bad_lists(session_factory, test_settings):
    service = SeatService(session_factory, settings=test_settings)

    with pytest.raises(InvalidRequestError):
        await service.seed_venue([])
    with pytest.raises(InvalidRequestError):
        await service.seed_venue(["A1", "a1"])
    with pytest.raises(InvalidRequestError):
        await service.seed_venue(["A1", "??"])
    assert not await service.is_seeded()


@pytest.mark.asyncio
async def test_seat_map_reflects_reservations(engine, seat_service):
    await engine.reserve("alice@example.com", "alice@example.com", ["A1", "B5"])

    seat_map = await seat_service.get_seat_map()

    assert seat_map.sold_seats == 2
    assert seat_map.available_seats == 8
    sold = {seat.seat_id for row in seat_map.rows.values() for seat in row if not seat.is_available}
    assert sold == {"A1", "B5"}
