import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from freeseat_booking.config import get_settings
from freeseat_booking.main import app
from freeseat_booking.utils.dependencies import (
    get_notification_service,
    get_reservation_engine,
    get_seat_service,
)

from conftest import ORGANIZER, RecordingNotifier

ALICE = "alice@uark.edu"


def identity_headers(identity: str) -> dict:
    return {"X-Authenticated-Identity": identity}


def reservation_body(seats, email=ALICE, **extra) -> dict:
    return {"seats": seats, "contact_email": email, **extra}


@pytest_asyncio.fixture
async def client(engine, notification_service, seat_service, test_settings):
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_reservation_engine] = lambda: engine
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_seat_service] = lambda: seat_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_seat_map(client):
    response = await client.get("/api/v1/seats")

    assert response.status_code == 200
    data = response.json()
    assert data["total_seats"] == 10
    assert data["available_seats"] == 10
    assert data["rows"]["A"][0] == {
        "seat_id": "A1", "row": "A", "number": 1, "status": "available", "is_available": True
    }


@pytest.mark.asyncio
async def test_reservation_requires_identity(client):
    response = await client.post("/api/v1/reservations", json=reservation_body(["A1"]))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_reserve_and_look_up(client, notifier):
    response = await client.post(
        "/api/v1/reservations",
        json=reservation_body(["A1", "A2"], guests=[{"seat": "A2", "name": "Sam Guest"}], affiliation="student"),
        headers=identity_headers(ALICE),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["seats"] == ["A1", "A2"]
    assert data["guests"] == [{"seat": "A2", "name": "Sam Guest"}]
    assert data["email_sent"] is True
    assert len(notifier.messages) == 1

    lookup = await client.get(f"/api/v1/orders/{data['order_id']}")
    assert lookup.status_code == 200
    order = lookup.json()
    assert order["seats"] == ["A1", "A2"]
    assert order["affiliation"] == "student"
    assert order["contact_email"] == "a***@uark.edu"
    assert "identity" not in order

    seat_map = (await client.get("/api/v1/seats")).json()
    assert seat_map["sold_seats"] == 2


@pytest.mark.asyncio
async def test_quota_exceeded_response(client):
    first = await client.post(
        "/api/v1/reservations", json=reservation_body(["A1"]), headers=identity_headers(ALICE)
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/reservations", json=reservation_body(["A2", "A3"]), headers=identity_headers(ALICE)
    )

    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["error_code"] == "QUOTA_EXCEEDED"
    assert detail["details"]["already"] == 1


@pytest.mark.asyncio
async def test_seats_unavailable_response(client):
    await client.post(
        "/api/v1/reservations", json=reservation_body(["B1"], email="bob@example.com"),
        headers=identity_headers("bob@example.com"),
    )

    response = await client.post(
        "/api/v1/reservations", json=reservation_body(["B1", "B2"]), headers=identity_headers(ALICE)
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["error_code"] == "SEATS_UNAVAILABLE"
    assert detail["details"]["conflicting_ids"] == ["B1"]


@pytest.mark.asyncio
async def test_invalid_contact_response(client):
    response = await client.post(
        "/api/v1/reservations",
        json=reservation_body(["A1"], email="alice@gmail.com", affiliation="staff"),
        headers=identity_headers(ALICE),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error_code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_empty_seat_list_fails_validation(client):
    response = await client.post(
        "/api/v1/reservations", json=reservation_body([]), headers=identity_headers(ALICE)
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delivery_failure_still_returns_order(client, engine, test_settings):
    from freeseat_booking.services.notification_service import NotificationService

    failing = NotificationService(engine, notifier=RecordingNotifier(fail=True), settings=test_settings)
    app.dependency_overrides[get_notification_service] = lambda: failing

    response = await client.post(
        "/api/v1/reservations", json=reservation_body(["A4"]), headers=identity_headers(ALICE)
    )

    assert response.status_code == 201
    assert response.json()["email_sent"] is False
    lookup = await client.get(f"/api/v1/orders/{response.json()['order_id']}")
    assert lookup.status_code == 200


@pytest.mark.asyncio
async def test_resend(client, notifier):
    created = await client.post(
        "/api/v1/reservations", json=reservation_body(["A5"]), headers=identity_headers(ALICE)
    )
    order_id = created.json()["order_id"]

    first = await client.post(f"/api/v1/orders/{order_id}/resend")
    second = await client.post(f"/api/v1/orders/{order_id}/resend")

    assert first.json() == {"order_id": order_id, "email_sent": True}
    assert second.json() == {"order_id": order_id, "email_sent": True}
    assert len(notifier.messages) == 3


@pytest.mark.asyncio
async def test_unknown_order(client):
    assert (await client.get("/api/v1/orders/R000000000ABCDEFGH")).status_code == 404
    assert (await client.post("/api/v1/orders/nonsense/resend")).status_code == 404


@pytest.mark.asyncio
async def test_quota_endpoint(client):
    await client.post(
        "/api/v1/reservations", json=reservation_body(["B3"]), headers=identity_headers(ALICE)
    )

    response = await client.get("/api/v1/reservations/quota", headers=identity_headers(ALICE))

    assert response.json() == {"seats_reserved": 1, "quota": 2, "remaining": 1}


@pytest.mark.asyncio
async def test_seed_endpoint_is_organizer_only(client):
    response = await client.post("/api/v1/seats/seed", json={}, headers=identity_headers(ALICE))
    assert response.status_code == 403

    response = await client.post("/api/v1/seats/seed", json={}, headers=identity_headers(ORGANIZER))
    assert response.status_code == 409
    assert response.json()["detail"]["error_code"] == "VENUE_ALREADY_SEEDED"
