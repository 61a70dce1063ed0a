"""
Order model: the immutable record of a committed reservation.
"""

from typing import List, Tuple, TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .order_seat import OrderSeat
    from .order_guest import OrderGuest


class Order(Base):
    """Order binding one identity to a specific, ordered set of seats."""

    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String(32), primary_key=True)

    identity: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    contact_email: Mapped[str] = mapped_column(String(320), nullable=False)
    affiliation_tag: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    # Relationships
    order_seats: Mapped[List["OrderSeat"]] = relationship(
        "OrderSeat",
        back_populates="order",
        order_by="OrderSeat.position",
        cascade="all, delete-orphan"
    )

    order_guests: Mapped[List["OrderGuest"]] = relationship(
        "OrderGuest",
        back_populates="order",
        order_by="OrderGuest.position",
        cascade="all, delete-orphan"
    )

    @property
    def seats(self) -> List[str]:
        """Seat ids in the order they were requested."""
        return [order_seat.seat_id for order_seat in self.order_seats]

    @property
    def guests(self) -> List[Tuple[str, str]]:
        """Guest annotations as ``(seat_id, display_name)`` pairs."""
        return [(guest.seat_id, guest.display_name) for guest in self.order_guests]

    @property
    def seat_count(self) -> int:
        return len(self.order_seats)

    def __repr__(self) -> str:
        """String representation of the order."""
        return (
            f"<Order(order_id={self.order_id}, identity={self.identity}, "
            f"seats={self.seats})>"
        )
