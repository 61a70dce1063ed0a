"""
Pydantic schemas for the venue seat map.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SeatResponse(BaseModel):
    """Schema for a single seat in the map."""
    model_config = ConfigDict(from_attributes=True)

    seat_id: str
    row: str
    number: int
    status: str
    is_available: bool


class SeatMapResponse(BaseModel):
    """Schema for seat map response."""
    rows: Dict[str, List[SeatResponse]]  # row letter -> seats in number order
    total_seats: int
    available_seats: int
    sold_seats: int


class VenueSeedRequest(BaseModel):
    """Schema for an explicit one-time venue seeding."""
    seat_ids: Optional[List[str]] = Field(
        None,
        min_length=1,
        description="Seat ids such as A1; the default venue map is generated when omitted"
    )


class VenueSeedResponse(BaseModel):
    """Schema for venue seeding result."""
    seats_created: int
