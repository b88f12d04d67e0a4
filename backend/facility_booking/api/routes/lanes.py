"""
Lane endpoints: catalog, daily occupancy grid and slot reservations.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import AwareDatetime

from facility_booking.api.deps import get_availability, get_catalog, get_engine
from facility_booking.core.logging import get_logger
from facility_booking.core.security import AuthContext, get_current_auth
from facility_booking.schemas.availability import DayGridResponse, LaneResponse
from facility_booking.schemas.reservation import (
    CancelResponse,
    LaneRangeReservationCreate,
    LaneSlotReservationCreate,
    ReservationResponse,
)
from facility_booking.services.availability_service import AvailabilityView
from facility_booking.services.booking_service import BookingEngine
from facility_booking.services.cache_service import (
    get_cached_grid,
    invalidate_availability_cache,
    set_cached_grid,
)
from facility_booking.services.catalog_service import ResourceCatalog

logger = get_logger(__name__)
router = APIRouter(tags=["Lanes"])


@router.get("/lanes", response_model=list[LaneResponse])
async def list_lanes(catalog: ResourceCatalog = Depends(get_catalog)):
    """List the facility's lanes, creating any missing default lanes first."""
    await catalog.ensure_default_resources()
    return await catalog.list()


@router.get("/availability/{day}", response_model=DayGridResponse)
async def day_grid(day: date, view: AvailabilityView = Depends(get_availability)):
    """
    Occupancy of every lane for every half-hour slot of a day.
    Cached in Redis; a snapshot only, reservations re-check capacity.
    """
    cached = await get_cached_grid(day)
    if cached:
        logger.info("grid_cache_hit", date=day.isoformat())
        cached["cached"] = True
        return DayGridResponse(**cached)

    grid = DayGridResponse.from_grid(await view.render(day))
    await set_cached_grid(day, grid.model_dump(mode="json"))
    return grid


@router.post(
    "/lanes/{lane_id}/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reserve_lane_slot(
    lane_id: int,
    payload: LaneSlotReservationCreate,
    auth: AuthContext = Depends(get_current_auth),
    engine: BookingEngine = Depends(get_engine),
):
    """Reserve a single half-hour slot on a lane."""
    reservation = await engine.reserve_lane_slot(auth, lane_id, payload.slot_start)
    await invalidate_availability_cache()
    return ReservationResponse.from_model(reservation)


@router.post(
    "/lanes/{lane_id}/ranges",
    response_model=list[ReservationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def reserve_lane_range(
    lane_id: int,
    payload: LaneRangeReservationCreate,
    auth: AuthContext = Depends(get_current_auth),
    engine: BookingEngine = Depends(get_engine),
):
    """
    Reserve consecutive slots on a lane between two local times of a day.
    Either every slot is reserved or none is.
    """
    reservations = await engine.reserve_lane_range(
        auth, lane_id, payload.day, payload.start_offset, payload.end_offset
    )
    await invalidate_availability_cache()
    return [ReservationResponse.from_model(r) for r in reservations]


@router.delete("/lanes/{lane_id}/reservations", response_model=CancelResponse)
async def cancel_lane_slot(
    lane_id: int,
    slot_start: AwareDatetime = Query(...),
    auth: AuthContext = Depends(get_current_auth),
    engine: BookingEngine = Depends(get_engine),
):
    """Cancel your own reservation of a lane slot."""
    cancelled = await engine.cancel_lane_slot(auth, lane_id, slot_start)
    if cancelled:
        await invalidate_availability_cache()
    return CancelResponse(cancelled=cancelled)
