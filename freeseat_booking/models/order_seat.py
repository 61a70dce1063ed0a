"""
OrderSeat model for linking orders to specific seats.
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .order import Order


class OrderSeat(Base):
    """One granted seat within an order."""

    __tablename__ = "order_seats"

    order_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("orders.order_id"),
        primary_key=True
    )

    position: Mapped[int] = mapped_column(Integer, primary_key=True)

    seat_id: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("seats.seat_id"),
        nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="order_seats")

    # A seat can belong to at most one order, ever
    __table_args__ = (
        UniqueConstraint("seat_id", name="uq_order_seats_seat"),
    )

    def __repr__(self) -> str:
        """String representation of the order seat."""
        return f"<OrderSeat(order_id={self.order_id}, seat_id={self.seat_id})>"
