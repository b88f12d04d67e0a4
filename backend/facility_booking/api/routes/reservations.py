"""
The acting user's reservations.
"""

from fastapi import APIRouter, Depends

from facility_booking.api.deps import get_engine
from facility_booking.core.security import AuthContext, get_current_auth
from facility_booking.schemas.reservation import CancelResponse, ReservationResponse
from facility_booking.services.booking_service import BookingEngine
from facility_booking.services.cache_service import invalidate_availability_cache

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.get("/", response_model=list[ReservationResponse])
async def list_my_reservations(
    auth: AuthContext = Depends(get_current_auth),
    engine: BookingEngine = Depends(get_engine),
):
    """Get all reservations of the authenticated user, newest first."""
    reservations = await engine.list_user_reservations(auth)
    return [ReservationResponse.from_model(r) for r in reservations]


@router.delete("/{reservation_id}", response_model=CancelResponse)
async def cancel_reservation(
    reservation_id: int,
    auth: AuthContext = Depends(get_current_auth),
    engine: BookingEngine = Depends(get_engine),
):
    """
    Cancel one of your reservations by id. Someone else's reservation is
    never removed and reports ``cancelled: false``.
    """
    cancelled = await engine.cancel(auth, reservation_id)
    if cancelled:
        await invalidate_availability_cache()
    return CancelResponse(cancelled=cancelled)
