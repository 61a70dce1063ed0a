"""API endpoints for the FreeSeat booking engine."""

from fastapi import APIRouter
from .seats import router as seats_router
from .reservations import router as reservations_router
from .orders import router as orders_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(seats_router)
api_router.include_router(reservations_router)
api_router.include_router(orders_router)

__all__ = ["api_router"]
