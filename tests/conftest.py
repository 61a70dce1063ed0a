import os

# Settings are read at import time; point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./freeseat_test.db")
os.environ.setdefault("ENABLE_CACHE", "false")
os.environ.setdefault("ENABLE_BACKGROUND_RESEND", "false")
os.environ.setdefault("SEED_VENUE_ON_STARTUP", "false")
os.environ.setdefault("ENABLE_REQUEST_LOGGING", "false")

from typing import List, Sequence

import pytest
import pytest_asyncio
from sqlalchemy import select

from freeseat_booking.config import Settings
from freeseat_booking.database import create_database_engine, create_session_factory, create_tables
from freeseat_booking.models import IdentityLedger, Order, Seat
from freeseat_booking.services.notification_service import NotificationService, Notifier
from freeseat_booking.services.receipt_renderer import ReceiptArtifact, ReceiptRenderer
from freeseat_booking.services.reservation_service import ReservationEngine
from freeseat_booking.services.seat_service import SeatService
from freeseat_booking.utils.exceptions import EmailServiceError

ORGANIZER = "organizer@example.com"


class RecordingNotifier(Notifier):
    """Keeps every delivered message in memory; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[dict] = []

    async def deliver(self, to: str, subject: str, body: str, attachments: Sequence[ReceiptArtifact] = ()):
        if self.fail:
            raise EmailServiceError("mail server unreachable")
        self.messages.append({
            "to": to,
            "subject": subject,
            "body": body,
            "attachments": list(attachments),
        })


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'freeseat.db'}",
        enable_cache=False,
        enable_background_resend=False,
        seed_venue_on_startup=False,
        organizer_identity=ORGANIZER,
        quota_max=2,
        venue_rows="AB",
        seats_per_row=5,
        receipts_dir=str(tmp_path / "receipts"),
        outbox_dir=str(tmp_path / "emails"),
        smtp_server=None,
        smtp_username=None,
        smtp_password=None,
    )


@pytest_asyncio.fixture
async def db_engine(test_settings):
    engine = create_database_engine(test_settings.database_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def seat_service(session_factory, test_settings):
    service = SeatService(session_factory, settings=test_settings)
    await service.seed_venue()
    return service


@pytest.fixture
def engine(session_factory, test_settings, seat_service) -> ReservationEngine:
    return ReservationEngine(session_factory, settings=test_settings)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def notification_service(engine, notifier, test_settings) -> NotificationService:
    return NotificationService(
        engine,
        notifier=notifier,
        renderer=ReceiptRenderer(test_settings),
        settings=test_settings,
    )


@pytest.fixture
def db_state(session_factory):
    """Read helpers for asserting on committed state."""

    class DBState:
        async def seat_statuses(self) -> dict:
            async with session_factory() as session:
                seats = (await session.execute(select(Seat))).scalars().all()
                return {seat.seat_id: seat.status.value for seat in seats}

        async def sold_seats(self) -> set:
            statuses = await self.seat_statuses()
            return {seat_id for seat_id, status in statuses.items() if status == "sold"}

        async def order_count(self) -> int:
            async with session_factory() as session:
                return len((await session.execute(select(Order.order_id))).all())

        async def ledger(self, identity: str):
            async with session_factory() as session:
                entry = await session.get(IdentityLedger, identity)
                return entry.seats_reserved if entry else None

        async def seat_owner(self, seat_id: str):
            async with session_factory() as session:
                seat = await session.get(Seat, seat_id)
                return seat.order_id

    return DBState()
