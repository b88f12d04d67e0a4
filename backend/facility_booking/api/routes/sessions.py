"""
Group session endpoints with Redis caching on the listing.
"""

from fastapi import APIRouter, Depends, status

from facility_booking.api.deps import get_availability, get_engine
from facility_booking.core.logging import get_logger
from facility_booking.core.security import (
    ROLE_ADMINISTRATOR,
    ROLE_TRAINER,
    AuthContext,
    get_current_auth,
    require_roles,
    require_session_booker,
)
from facility_booking.schemas.reservation import CancelResponse, ReservationResponse
from facility_booking.schemas.session import (
    SessionAvailabilityResponse,
    SessionCreate,
    SessionDeleteResponse,
    SessionListResponse,
    SessionResponse,
)
from facility_booking.services.availability_service import AvailabilityView
from facility_booking.services.booking_service import BookingEngine
from facility_booking.services.cache_service import (
    get_cached_sessions,
    invalidate_availability_cache,
    set_cached_sessions,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("/", response_model=SessionListResponse)
async def list_sessions(view: AvailabilityView = Depends(get_availability)):
    """All sessions ordered by start time with their reservation counts."""
    cached = await get_cached_sessions()
    if cached:
        logger.info("sessions_list_cache_hit")
        cached["cached"] = True
        return SessionListResponse(**cached)

    items = [SessionAvailabilityResponse.from_availability(i) for i in await view.list_sessions()]
    response = SessionListResponse(sessions=items, total=len(items))
    await set_cached_sessions(response.model_dump(mode="json"))
    return response


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    auth: AuthContext = Depends(require_roles(ROLE_ADMINISTRATOR, ROLE_TRAINER)),
    engine: BookingEngine = Depends(get_engine),
):
    """Create a group session. Administrators and trainers only."""
    session = await engine.create_session(
        auth, payload.title, payload.start, payload.end, payload.available_slots
    )
    await invalidate_availability_cache()
    return session


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: int, engine: BookingEngine = Depends(get_engine)):
    return await engine.get_session(session_id)


@router.delete("/{session_id}", response_model=SessionDeleteResponse)
async def delete_session(
    session_id: int,
    auth: AuthContext = Depends(require_roles(ROLE_ADMINISTRATOR)),
    engine: BookingEngine = Depends(get_engine),
):
    """Delete a session and all of its reservations. Administrators only."""
    removed = await engine.delete_session(auth, session_id)
    await invalidate_availability_cache()
    return SessionDeleteResponse(
        message="Session deleted",
        session_id=session_id,
        reservations_removed=removed,
    )


@router.post(
    "/{session_id}/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reserve_session(
    session_id: int,
    auth: AuthContext = Depends(require_session_booker),
    engine: BookingEngine = Depends(get_engine),
):
    """Reserve a place in a session. Trainers cannot reserve."""
    reservation = await engine.reserve_session(auth, session_id)
    await invalidate_availability_cache()
    return ReservationResponse.from_model(reservation)


@router.delete("/{session_id}/reservations", response_model=CancelResponse)
async def cancel_session_reservation(
    session_id: int,
    auth: AuthContext = Depends(get_current_auth),
    engine: BookingEngine = Depends(get_engine),
):
    """Cancel your own reservation of a session."""
    cancelled = await engine.cancel_session(auth, session_id)
    if cancelled:
        await invalidate_availability_cache()
    return CancelResponse(cancelled=cancelled)
