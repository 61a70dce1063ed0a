"""
OrderGuest model for optional guest names attached to seats of an order.
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .order import Order


class OrderGuest(Base):
    """A display name annotating one seat of an order."""

    __tablename__ = "order_guests"

    order_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("orders.order_id"),
        primary_key=True
    )

    position: Mapped[int] = mapped_column(Integer, primary_key=True)

    seat_id: Mapped[str] = mapped_column(String(16), nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="order_guests")

    __table_args__ = (
        UniqueConstraint("order_id", "seat_id", name="uq_order_guests_order_seat"),
    )
