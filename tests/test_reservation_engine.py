import pytest
from sqlalchemy import update

from freeseat_booking.models import IdentityLedger
from freeseat_booking.services import reservation_service
from freeseat_booking.utils.exceptions import (
    ConcurrencyError,
    InternalError,
    InvalidRequestError,
    OrderNotFoundError,
    QuotaExceededError,
    SeatsUnavailableError,
)
from freeseat_booking.utils.order_id import looks_like_order_id

from conftest import ORGANIZER

ALICE = "alice@uark.edu"
BOB = "bob@example.com"


@pytest.mark.asyncio
async def test_reserve_two_seats_commits_order(engine, db_state):
    order = await engine.reserve(ALICE, ALICE, ["A1", "A2"], affiliation_tag="student")

    assert looks_like_order_id(order.order_id)
    assert order.seats == ["A1", "A2"]
    assert order.guests == []
    assert order.identity == ALICE
    assert await db_state.sold_seats() == {"A1", "A2"}
    assert await db_state.seat_owner("A1") == order.order_id
    assert await db_state.ledger(ALICE) == 2


@pytest.mark.asyncio
async def test_quota_is_cumulative_across_orders(engine, db_state):
    await engine.reserve(ALICE, ALICE, ["A1"])

    with pytest.raises(QuotaExceededError) as exc_info:
        await engine.reserve(ALICE, ALICE, ["A2", "A3"])

    assert exc_info.value.already == 1
    assert exc_info.value.quota == 2
    assert "You already reserved 1 seat(s). Max total is 2." in exc_info.value.message
    assert await db_state.sold_seats() == {"A1"}

    # One more seat still fits
    await engine.reserve(ALICE, ALICE, ["A2"])
    assert await db_state.ledger(ALICE) == 2


@pytest.mark.asyncio
async def test_unavailable_seat_fails_whole_request(engine, db_state):
    await engine.reserve(BOB, BOB, ["A1"])

    with pytest.raises(SeatsUnavailableError) as exc_info:
        await engine.reserve(ALICE, ALICE, ["A1", "A2"])

    assert exc_info.value.conflicting_ids == ["A1"]
    assert await db_state.sold_seats() == {"A1"}
    assert await db_state.ledger(ALICE) is None
    assert await db_state.order_count() == 1


@pytest.mark.asyncio
async def test_unknown_seat_reported_as_conflicting(engine, db_state):
    with pytest.raises(SeatsUnavailableError) as exc_info:
        await engine.reserve(ALICE, ALICE, ["A1", "Z99"])

    assert exc_info.value.conflicting_ids == ["Z99"]
    assert await db_state.sold_seats() == set()


@pytest.mark.asyncio
async def test_seat_ids_are_normalized(engine):
    order = await engine.reserve(ALICE, ALICE, [" a1 ", "b2"])
    assert order.seats == ["A1", "B2"]


@pytest.mark.asyncio
async def test_guests_are_stored_in_order(engine):
    order = await engine.reserve(
        ALICE, ALICE, ["A1", "A2"], guests=[("A2", "Sam Guest"), ("A1", "Pat Guest")]
    )

    assert order.guests == [("A2", "Sam Guest"), ("A1", "Pat Guest")]

    stored = await engine.lookup(order.order_id)
    assert stored.guests == [("A2", "Sam Guest"), ("A1", "Pat Guest")]
    assert stored.seats == ["A1", "A2"]


@pytest.mark.parametrize(
    "seat_ids, guests, email, affiliation, field",
    [
        ([], None, ALICE, "", "seat_ids"),
        (["A1", "A1"], None, ALICE, "", "seat_ids"),
        (["A1", " "], None, ALICE, "", "seat_ids"),
        (["A1"], None, "not-an-email", "", "contact_email"),
        (["A1"], None, "alice@gmail.com", "student", "contact_email"),
        (["A1"], None, "alice@gmail.com", "Staff", "contact_email"),
        (["A1"], [("A2", "Sam")], ALICE, "", "guests"),
        (["A1", "A2"], [("A1", "Sam"), ("A1", "Pat")], ALICE, "", "guests"),
        (["A1"], [("A1", "   ")], ALICE, "", "guests"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_requests_are_rejected_before_any_write(
    engine, db_state, seat_ids, guests, email, affiliation, field
):
    with pytest.raises(InvalidRequestError) as exc_info:
        await engine.reserve(ALICE, email, seat_ids, guests=guests, affiliation_tag=affiliation)

    assert exc_info.value.field == field
    assert await db_state.sold_seats() == set()
    assert await db_state.ledger(ALICE) is None


@pytest.mark.asyncio
async def test_seat_checks_come_before_contact_checks(engine):
    with pytest.raises(InvalidRequestError) as exc_info:
        await engine.reserve(ALICE, "bad-email", ["A1", "A1"])
    assert exc_info.value.field == "seat_ids"


@pytest.mark.asyncio
async def test_public_affiliation_may_use_any_domain(engine):
    order = await engine.reserve(BOB, "bob@gmail.com", ["B1"], affiliation_tag="public")
    assert order.affiliation_tag == "public"


@pytest.mark.asyncio
async def test_organizer_is_exempt_from_quota(engine, db_state):
    order = await engine.reserve(
        ORGANIZER, ORGANIZER, ["A1", "A2", "A3", "A4"], organizer_flag=True
    )

    assert order.seat_count == 4
    assert await db_state.ledger(ORGANIZER) == 4


@pytest.mark.asyncio
async def test_organizer_can_take_whole_venue_in_one_call(engine, db_state):
    all_seats = [f"{row}{number}" for row in "AB" for number in range(1, 6)]

    order = await engine.reserve(ORGANIZER, ORGANIZER, all_seats, organizer_flag=True)

    assert order.seat_count == 10
    assert await db_state.sold_seats() == set(all_seats)
    assert await db_state.ledger(ORGANIZER) == 10


@pytest.mark.asyncio
async def test_organizer_flag_from_other_identity_is_invalid(engine, db_state):
    with pytest.raises(InvalidRequestError) as exc_info:
        await engine.reserve(ALICE, ALICE, ["A1", "A2", "A3"], organizer_flag=True)

    assert exc_info.value.field == "organizer_flag"
    assert await db_state.sold_seats() == set()


@pytest.mark.asyncio
async def test_organizer_without_flag_is_bound_by_quota(engine):
    with pytest.raises(QuotaExceededError):
        await engine.reserve(ORGANIZER, ORGANIZER, ["A1", "A2", "A3"])


@pytest.mark.asyncio
async def test_lookup_unknown_and_malformed_ids(engine):
    with pytest.raises(OrderNotFoundError):
        await engine.lookup("R000000000ABCDEFGH")
    with pytest.raises(OrderNotFoundError):
        await engine.lookup("nonsense")
    with pytest.raises(OrderNotFoundError):
        await engine.lookup("")


@pytest.mark.asyncio
async def test_quota_uses_derived_count_and_repairs_ledger(engine, session_factory, db_state):
    await engine.reserve(ALICE, ALICE, ["A1"])

    # Corrupt the cached total; the order store still says one seat
    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(IdentityLedger)
                .where(IdentityLedger.identity == ALICE)
                .values(seats_reserved=0)
            )

    with pytest.raises(QuotaExceededError) as exc_info:
        await engine.reserve(ALICE, ALICE, ["A2", "A3"])
    assert exc_info.value.already == 1

    await engine.reserve(ALICE, ALICE, ["A2"])
    assert await db_state.ledger(ALICE) == 2


@pytest.mark.asyncio
async def test_failure_mid_transaction_rolls_back_everything(engine, db_state, monkeypatch):
    async def broken_ledger_update(*args, **kwargs):
        raise InternalError("disk full")

    monkeypatch.setattr(engine, "_update_ledger", broken_ledger_update)

    with pytest.raises(InternalError):
        await engine.reserve(ALICE, ALICE, ["A1", "A2"])

    assert await db_state.sold_seats() == set()
    assert await db_state.order_count() == 0
    assert await db_state.ledger(ALICE) is None


@pytest.mark.asyncio
async def test_persistent_conflict_is_retried_once_then_surfaces_internal(engine, db_state, monkeypatch):
    calls = []

    async def conflicting_ledger_update(*args, **kwargs):
        calls.append(1)
        raise ConcurrencyError("ledger moved")

    monkeypatch.setattr(engine, "_update_ledger", conflicting_ledger_update)

    with pytest.raises(InternalError):
        await engine.reserve(ALICE, ALICE, ["A1"])

    assert len(calls) == 2
    assert await db_state.sold_seats() == set()


@pytest.mark.asyncio
async def test_single_conflict_is_retried_transparently(engine, db_state, monkeypatch):
    original = engine._update_ledger
    calls = []

    async def flaky_ledger_update(*args, **kwargs):
        calls.append(1)
        if len(calls) == 1:
            raise ConcurrencyError("ledger moved")
        return await original(*args, **kwargs)

    monkeypatch.setattr(engine, "_update_ledger", flaky_ledger_update)

    order = await engine.reserve(ALICE, ALICE, ["A1"])

    assert len(calls) == 2
    assert await db_state.seat_owner("A1") == order.order_id
    assert await db_state.order_count() == 1


@pytest.mark.asyncio
async def test_order_id_collision_is_regenerated(engine, monkeypatch):
    first = await engine.reserve(BOB, BOB, ["B1"])

    generated = iter([first.order_id, "R000000001ABCDEFGH"])
    monkeypatch.setattr(
        reservation_service, "generate_order_id", lambda *args, **kwargs: next(generated)
    )

    second = await engine.reserve(ALICE, ALICE, ["A1"])
    assert second.order_id == "R000000001ABCDEFGH"


@pytest.mark.asyncio
async def test_remaining_quota(engine):
    assert await engine.remaining_quota(ALICE) == 2
    await engine.reserve(ALICE, ALICE, ["A1"])
    assert await engine.reserved_seat_count(ALICE) == 1
    assert await engine.remaining_quota(ALICE) == 1
    assert await engine.remaining_quota(ORGANIZER) is None
