"""
Seat model for the fixed venue map.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class SeatStatus(enum.Enum):
    """Enumeration for seat status."""
    AVAILABLE = "available"
    SOLD = "sold"


class Seat(Base):
    """A seat in the venue map, identified by row letter and number (e.g. ``A1``)."""

    __tablename__ = "seats"

    seat_id: Mapped[str] = mapped_column(String(16), primary_key=True)

    # Seat location information
    row: Mapped[str] = mapped_column(String(8), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[SeatStatus] = mapped_column(
        Enum(SeatStatus),
        default=SeatStatus.AVAILABLE,
        nullable=False,
        index=True
    )

    # Set together with status by the reservation commit
    order_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("orders.order_id"),
        nullable=True,
        index=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("row", "number", name="uq_seats_row_number"),
        CheckConstraint("number > 0", name="ck_seats_number_positive"),
    )

    @property
    def is_available(self) -> bool:
        """Check if the seat can still be reserved."""
        return self.status == SeatStatus.AVAILABLE

    def __repr__(self) -> str:
        """String representation of the seat."""
        return f"<Seat(seat_id={self.seat_id}, status={self.status.value})>"
