"""
Pydantic schemas for reservations and order lookup.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.order import Order


class GuestEntry(BaseModel):
    """A display name attached to one reserved seat."""
    seat: str = Field(..., min_length=1, max_length=16, description="Seat id the guest will sit in")
    name: str = Field(..., min_length=1, max_length=200, description="Guest display name")


class ReservationRequest(BaseModel):
    """Schema for a reservation request."""
    seats: List[str] = Field(..., min_length=1, description="Seat ids to reserve, e.g. [\"A1\", \"A2\"]")
    guests: List[GuestEntry] = Field(default_factory=list, description="Optional guest names per seat")
    contact_email: str = Field(..., min_length=3, max_length=320, description="Where the receipt is sent")
    affiliation: str = Field("", max_length=64, description="Affiliation such as student, staff or public")
    organizer: bool = Field(False, description="Request the organizer quota exemption")

    def guest_pairs(self) -> List[tuple]:
        return [(guest.seat, guest.name) for guest in self.guests]


class ReservationResponse(BaseModel):
    """Schema for a committed reservation."""
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    seats: List[str]
    guests: List[GuestEntry]
    created_at: datetime
    email_sent: bool

    @classmethod
    def from_order(cls, order: Order, email_sent: bool) -> "ReservationResponse":
        return cls(
            order_id=order.order_id,
            seats=order.seats,
            guests=[GuestEntry(seat=seat_id, name=name) for seat_id, name in order.guests],
            created_at=order.created_at,
            email_sent=email_sent,
        )


def mask_email(email: str) -> str:
    """Hide most of the local part: ``jdoe@uark.edu`` becomes ``j***@uark.edu``."""
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


class OrderLookupResponse(BaseModel):
    """Public view of an order; never includes the owning identity."""
    order_id: str
    seats: List[str]
    guests: List[GuestEntry]
    affiliation: str
    contact_email: str = Field(..., description="Masked contact address")
    created_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderLookupResponse":
        return cls(
            order_id=order.order_id,
            seats=order.seats,
            guests=[GuestEntry(seat=seat_id, name=name) for seat_id, name in order.guests],
            affiliation=order.affiliation_tag,
            contact_email=mask_email(order.contact_email),
            created_at=order.created_at,
        )


class ResendResponse(BaseModel):
    """Schema for a receipt resend attempt."""
    order_id: str
    email_sent: bool


class QuotaResponse(BaseModel):
    """Schema for the caller's remaining seat allowance."""
    seats_reserved: int
    quota: Optional[int] = Field(None, description="Null for the organizer, who is exempt")
    remaining: Optional[int] = None
