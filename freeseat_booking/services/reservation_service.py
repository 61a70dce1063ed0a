"""
Reservation engine: the transactional core that grants seats to identities.

Every check that feeds the grant decision (cumulative quota, seat
availability) runs inside the same transaction as the writes it guards:

* the identity's ledger row is locked first, so two reservations for the
  same identity serialize on it;
* the cumulative seat count is re-derived from the order store under that
  lock, never taken from the cached ledger value;
* seats are read with row locks and flipped to SOLD with a conditional
  update whose affected row count must match the request;
* ``order_seats.seat_id`` is unique, so the database itself refuses a seat
  in two orders.

A definite conflict (the transaction was rolled back) is retried once. An
error raised by COMMIT itself is ambiguous and is never retried here.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ..cache import CacheInvalidator
from ..config import Settings, get_settings
from ..models.identity_ledger import IdentityLedger
from ..models.order import Order
from ..models.order_guest import OrderGuest
from ..models.order_seat import OrderSeat
from ..models.seat import Seat, SeatStatus
from ..utils.db_errors import translate_storage_error
from ..utils.exceptions import (
    ConcurrencyError,
    FreeSeatError,
    InternalError,
    InvalidRequestError,
    OrderNotFoundError,
    QuotaExceededError,
    SeatsUnavailableError,
)
from ..utils.logging_config import log_business_event
from ..utils.order_id import generate_order_id, looks_like_order_id
from ..utils.retry import retry_on_concurrency_error, retry_on_storage_error
from .contact_policy import DEFAULT_REJECTION, ContactPolicy, ContactValidator

logger = logging.getLogger(__name__)

MAX_GUEST_NAME_LENGTH = 200

GuestPair = Tuple[str, str]


def normalize_seat_id(seat_id: str) -> str:
    return str(seat_id).strip().upper()


class ReservationEngine:
    """Grants seats atomically and enforces the cumulative per-identity quota."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None,
        contact_policy: Optional[ContactValidator] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.contact_policy = contact_policy or ContactPolicy(
            restricted_affiliations=self.settings.restricted_affiliations,
            allowed_domains=self.settings.allowed_email_domains,
        )

    @property
    def quota_max(self) -> int:
        return self.settings.quota_max

    async def reserve(
        self,
        identity: str,
        contact_email: str,
        seat_ids: Sequence[str],
        guests: Optional[Iterable[GuestPair]] = None,
        affiliation_tag: str = "",
        organizer_flag: bool = False,
    ) -> Order:
        """
        Reserve seats for an authenticated identity.

        Args:
            identity: Verified identity string from the identity provider
            contact_email: Address that receives the receipt
            seat_ids: Seats to grant, in display order
            guests: Optional ``(seat_id, display_name)`` annotations
            affiliation_tag: Opaque classification used by the contact policy
            organizer_flag: Request the organizer quota exemption

        Returns:
            The committed order, with seats and guests loaded

        Raises:
            InvalidRequestError: Malformed input or contact refused by policy
            QuotaExceededError: Identity would exceed the cumulative quota
            SeatsUnavailableError: Some seats are unknown or already sold
            InternalError: Storage failure; the caller should re-submit
        """
        identity = (identity or "").strip()
        affiliation_tag = (affiliation_tag or "").strip()
        contact_email = (contact_email or "").strip()

        if not identity:
            raise InvalidRequestError("An authenticated identity is required", field="identity")

        requested_seats = self._validate_seat_ids(seat_ids)
        self._validate_contact(contact_email, affiliation_tag)
        guest_pairs = self._validate_guests(guests, requested_seats)
        organizer = self._resolve_organizer(identity, organizer_flag)

        try:
            order = await self._commit_reservation(
                identity=identity,
                contact_email=contact_email,
                seat_ids=requested_seats,
                guests=guest_pairs,
                affiliation_tag=affiliation_tag,
                organizer=organizer,
            )
        except ConcurrencyError as e:
            logger.warning(f"Reservation for {identity} kept conflicting with concurrent writers")
            raise InternalError("Reservation conflicted with concurrent requests; please retry") from e
        except (QuotaExceededError, SeatsUnavailableError) as e:
            log_business_event(
                "reservation_rejected",
                {"reason": e.error_code.value, "seats": requested_seats, **e.details},
                user_id=identity,
            )
            raise

        await CacheInvalidator.invalidate_seat_caches()

        log_business_event(
            "reservation_committed",
            {"order_id": order.order_id, "seats": order.seats, "organizer": organizer},
            user_id=identity,
        )
        logger.info(f"Order {order.order_id} committed with {order.seat_count} seat(s)")
        return order

    @retry_on_storage_error()
    async def lookup(self, order_id: str) -> Order:
        """
        Get a committed order by its exact id.

        Raises:
            OrderNotFoundError: No order has this id
            InternalError: Storage failure (retried once before surfacing)
        """
        order_id = (order_id or "").strip()
        if not looks_like_order_id(order_id, self.settings.order_id_random_length):
            raise OrderNotFoundError(order_id)

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(Order)
                    .options(
                        selectinload(Order.order_seats),
                        selectinload(Order.order_guests),
                    )
                    .where(Order.order_id == order_id)
                )
                order = result.scalar_one_or_none()
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Storage failure looking up order {order_id}: {e}")
                raise InternalError("Storage failure during order lookup") from e

        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    @retry_on_storage_error()
    async def reserved_seat_count(self, identity: str) -> int:
        """Cumulative seats granted to an identity, derived from the order store."""
        async with self.session_factory() as session:
            try:
                return await self._derive_reserved_count(session, identity)
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Storage failure reading quota for {identity}: {e}")
                raise InternalError("Storage failure during quota read") from e

    async def remaining_quota(self, identity: str) -> Optional[int]:
        """Seats the identity may still reserve; None for the organizer."""
        if self.settings.organizer_identity and identity == self.settings.organizer_identity:
            return None
        already = await self.reserved_seat_count(identity)
        return max(self.quota_max - already, 0)

    # Validation helpers

    def _validate_seat_ids(self, seat_ids: Sequence[str]) -> List[str]:
        if seat_ids is None or isinstance(seat_ids, str):
            raise InvalidRequestError("Seats must be a list of seat ids", field="seat_ids")

        normalized = [normalize_seat_id(seat_id) for seat_id in seat_ids]
        if not normalized:
            raise InvalidRequestError("At least one seat is required", field="seat_ids")
        if any(not seat_id for seat_id in normalized):
            raise InvalidRequestError("Seat ids must not be blank", field="seat_ids")

        duplicates = sorted({seat_id for seat_id in normalized if normalized.count(seat_id) > 1})
        if duplicates:
            raise InvalidRequestError(
                f"Duplicate seats in request: {', '.join(duplicates)}", field="seat_ids"
            )
        return normalized

    def _validate_contact(self, contact_email: str, affiliation_tag: str) -> None:
        if self.contact_policy.validate(contact_email, affiliation_tag):
            return

        explain = getattr(self.contact_policy, "rejection_reason", None)
        reason = explain(contact_email, affiliation_tag) if callable(explain) else None
        raise InvalidRequestError(reason or DEFAULT_REJECTION, field="contact_email")

    def _validate_guests(
        self,
        guests: Optional[Iterable[GuestPair]],
        seat_ids: List[str],
    ) -> List[GuestPair]:
        if not guests:
            return []

        requested = set(seat_ids)
        pairs: List[GuestPair] = []
        seen = set()
        for seat_id, display_name in guests:
            seat_id = normalize_seat_id(seat_id)
            display_name = (display_name or "").strip()
            if seat_id not in requested:
                raise InvalidRequestError(
                    f"Guest seat {seat_id} is not part of this reservation", field="guests"
                )
            if seat_id in seen:
                raise InvalidRequestError(f"Seat {seat_id} has more than one guest", field="guests")
            if not display_name:
                raise InvalidRequestError(f"Guest name for seat {seat_id} is empty", field="guests")
            if len(display_name) > MAX_GUEST_NAME_LENGTH:
                raise InvalidRequestError(f"Guest name for seat {seat_id} is too long", field="guests")
            seen.add(seat_id)
            pairs.append((seat_id, display_name))
        return pairs

    def _resolve_organizer(self, identity: str, organizer_flag: bool) -> bool:
        if not organizer_flag:
            return False
        organizer_identity = self.settings.organizer_identity
        if not organizer_identity or identity != organizer_identity:
            raise InvalidRequestError(
                "Organizer exemption is not available for this identity",
                field="organizer_flag",
            )
        return True

    # Transaction

    @retry_on_concurrency_error(max_attempts=2)
    async def _commit_reservation(
        self,
        identity: str,
        contact_email: str,
        seat_ids: List[str],
        guests: List[GuestPair],
        affiliation_tag: str,
        organizer: bool,
    ) -> Order:
        async with self.session_factory() as session:
            committing = False
            try:
                async with session.begin():
                    order = await self._reserve_in_transaction(
                        session, identity, contact_email, seat_ids, guests, affiliation_tag, organizer
                    )
                    committing = True
            except FreeSeatError:
                raise
            except (SQLAlchemyError, OSError) as e:
                if committing:
                    # The commit may or may not have landed; a blind retry could double-grant
                    logger.error(f"Commit outcome unknown for reservation by {identity}: {e}")
                    raise InternalError("Reservation outcome unknown; please check and retry") from e
                raise translate_storage_error(e, "reservation") from e

        return order

    async def _reserve_in_transaction(
        self,
        session: AsyncSession,
        identity: str,
        contact_email: str,
        seat_ids: List[str],
        guests: List[GuestPair],
        affiliation_tag: str,
        organizer: bool,
    ) -> Order:
        ledger = await self._lock_ledger(session, identity)
        already = await self._derive_reserved_count(session, identity)
        if ledger.seats_reserved != already:
            logger.warning(
                f"Identity ledger drift for {identity}: cached {ledger.seats_reserved}, "
                f"derived {already}; repairing"
            )

        requested = len(seat_ids)
        if not organizer and already + requested > self.quota_max:
            raise QuotaExceededError(already=already, requested=requested, quota=self.quota_max)

        await self._check_availability(session, seat_ids)

        order_id = await self._generate_unique_order_id(session)
        order = Order(
            order_id=order_id,
            identity=identity,
            contact_email=contact_email,
            affiliation_tag=affiliation_tag,
            created_at=datetime.now(timezone.utc),
            order_seats=[
                OrderSeat(position=position, seat_id=seat_id)
                for position, seat_id in enumerate(seat_ids)
            ],
            order_guests=[
                OrderGuest(position=position, seat_id=seat_id, display_name=display_name)
                for position, (seat_id, display_name) in enumerate(guests)
            ],
        )
        session.add(order)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConcurrencyError("Seat or order id claimed by a concurrent reservation") from e

        await self._mark_seats_sold(session, seat_ids, order_id)
        await self._update_ledger(session, identity, ledger.seats_reserved, already + requested)
        await session.flush()
        return order

    async def _lock_ledger(self, session: AsyncSession, identity: str) -> IdentityLedger:
        """Ensure the identity's ledger row exists and lock it for this transaction."""
        dialect = session.bind.dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            dialect_insert = None

        if dialect_insert is not None:
            await session.execute(
                dialect_insert(IdentityLedger)
                .values(identity=identity, seats_reserved=0)
                .on_conflict_do_nothing(index_elements=["identity"])
            )
        else:
            existing = await session.get(IdentityLedger, identity)
            if existing is None:
                session.add(IdentityLedger(identity=identity, seats_reserved=0))
                await session.flush()

        result = await session.execute(
            select(IdentityLedger)
            .where(IdentityLedger.identity == identity)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _derive_reserved_count(self, session: AsyncSession, identity: str) -> int:
        result = await session.execute(
            select(func.count(OrderSeat.seat_id))
            .join(Order, Order.order_id == OrderSeat.order_id)
            .where(Order.identity == identity)
        )
        return int(result.scalar_one() or 0)

    async def _check_availability(self, session: AsyncSession, seat_ids: List[str]) -> None:
        result = await session.execute(
            select(Seat)
            .where(Seat.seat_id.in_(seat_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        seats = {seat.seat_id: seat for seat in result.scalars().all()}

        conflicting = [
            seat_id for seat_id in seat_ids
            if seat_id not in seats or not seats[seat_id].is_available
        ]
        if conflicting:
            raise SeatsUnavailableError(conflicting)

    async def _mark_seats_sold(self, session: AsyncSession, seat_ids: List[str], order_id: str) -> None:
        """Compare-and-swap every requested seat from AVAILABLE to SOLD."""
        result = await session.execute(
            update(Seat)
            .where(
                Seat.seat_id.in_(seat_ids),
                Seat.status == SeatStatus.AVAILABLE,
            )
            .values(status=SeatStatus.SOLD, order_id=order_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(seat_ids):
            raise ConcurrencyError("Seats were sold by a concurrent reservation")

    async def _update_ledger(
        self,
        session: AsyncSession,
        identity: str,
        expected: int,
        new_total: int,
    ) -> None:
        result = await session.execute(
            update(IdentityLedger)
            .where(
                IdentityLedger.identity == identity,
                IdentityLedger.seats_reserved == expected,
            )
            .values(seats_reserved=new_total)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyError(f"Quota ledger for {identity} changed concurrently")

    async def _generate_unique_order_id(self, session: AsyncSession) -> str:
        for _ in range(self.settings.order_id_max_attempts):
            order_id = generate_order_id(self.settings.order_id_random_length)
            existing = await session.execute(
                select(Order.order_id).where(Order.order_id == order_id)
            )
            if existing.scalar_one_or_none() is None:
                return order_id
            logger.warning(f"Order id collision on {order_id}; regenerating")
        raise InternalError("Could not allocate a unique order id")
