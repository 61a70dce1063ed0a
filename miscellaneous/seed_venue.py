#!/usr/bin/env python3
"""
One-time venue seeding for the FreeSeat booking engine.

Usage:
  python seed_venue.py                 # default map from VENUE_ROWS x SEATS_PER_ROW
  python seed_venue.py A1 A2 B1 B2     # explicit seat ids
  python seed_venue.py --show          # print the current seat counts
"""

import asyncio
import sys
import os

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from freeseat_booking.database import close_database, get_session_factory, init_database
from freeseat_booking.services.seat_service import SeatService
from freeseat_booking.utils.exceptions import FreeSeatError


async def seed(seat_ids):
    await init_database()
    try:
        seat_service = SeatService(get_session_factory())
        created = await seat_service.seed_venue(seat_ids or None)
        print(f"Created {created} seats")
    finally:
        await close_database()


async def show():
    await init_database()
    try:
        seat_map = await SeatService(get_session_factory()).get_seat_map()
        print(f"Total: {seat_map.total_seats}  Available: {seat_map.available_seats}  Sold: {seat_map.sold_seats}")
    finally:
        await close_database()


def main():
    args = sys.argv[1:]
    try:
        if args == ["--show"]:
            asyncio.run(show())
        else:
            asyncio.run(seed(args))
    except FreeSeatError as e:
        print(f"Refused: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
