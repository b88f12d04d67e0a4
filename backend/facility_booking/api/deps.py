"""
Per-request wiring of the booking core onto the request's DB session.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from facility_booking.db.session import get_db
from facility_booking.infrastructure.sql_store import SqlReservationStore
from facility_booking.services.availability_service import AvailabilityView
from facility_booking.services.booking_service import BookingEngine
from facility_booking.services.catalog_service import ResourceCatalog
from facility_booking.services.slot_clock import SlotClock

_clock = SlotClock()


def get_clock() -> SlotClock:
    return _clock


def get_store(db: AsyncSession = Depends(get_db)) -> SqlReservationStore:
    return SqlReservationStore(db)


def get_catalog(store: SqlReservationStore = Depends(get_store)) -> ResourceCatalog:
    return ResourceCatalog(store)


def get_availability(
    store: SqlReservationStore = Depends(get_store),
    clock: SlotClock = Depends(get_clock),
    catalog: ResourceCatalog = Depends(get_catalog),
) -> AvailabilityView:
    return AvailabilityView(store, clock, catalog)


def get_engine(
    store: SqlReservationStore = Depends(get_store),
    clock: SlotClock = Depends(get_clock),
) -> BookingEngine:
    return BookingEngine(store, clock)
