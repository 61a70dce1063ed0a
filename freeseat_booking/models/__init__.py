"""
Database models for the FreeSeat booking engine.
"""

from .base import Base
from .seat import Seat, SeatStatus
from .order import Order
from .order_seat import OrderSeat
from .order_guest import OrderGuest
from .identity_ledger import IdentityLedger

__all__ = [
    "Base",
    "Seat",
    "SeatStatus",
    "Order",
    "OrderSeat",
    "OrderGuest",
    "IdentityLedger",
]
