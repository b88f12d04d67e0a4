"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from facility_booking.api.routes import lanes, sessions, reservations

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(lanes.router)
api_router.include_router(sessions.router)
api_router.include_router(reservations.router)
