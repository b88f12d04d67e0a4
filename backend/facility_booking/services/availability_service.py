"""
Read-only occupancy views.

A rendered grid is a snapshot taken at read time. It is fine for display
and caching, but the booking engine re-checks capacity at commit time and
never consults it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

from facility_booking.core.logging import get_logger
from facility_booking.models import GroupSession, Lane
from facility_booking.services.catalog_service import ResourceCatalog
from facility_booking.services.interfaces import ReservationStore
from facility_booking.services.slot_clock import SlotClock

logger = get_logger(__name__)


@dataclass
class SlotRow:
    slot_start: datetime
    counts: dict[int, int] = field(default_factory=dict)


@dataclass
class DayGrid:
    day: date
    lanes: list[Lane]
    slots: list[SlotRow]

    def count(self, slot_start: datetime, lane_id: int) -> int:
        for row in self.slots:
            if row.slot_start == slot_start:
                return row.counts.get(lane_id, 0)
        raise KeyError(slot_start)


@dataclass
class SessionAvailability:
    session: GroupSession
    reserved: int

    @property
    def remaining(self) -> int:
        return max(self.session.available_slots - self.reserved, 0)


class AvailabilityView:

    def __init__(self, store: ReservationStore, clock: SlotClock, catalog: ResourceCatalog):
        self.store = store
        self.clock = clock
        self.catalog = catalog

    async def render(self, day: date) -> DayGrid:
        """Occupancy of every (slot, lane) cell of ``day`` from one grouped read."""
        await self.catalog.ensure_default_resources()
        lanes = await self.catalog.list()

        slots = self.clock.enumerate_slots(day)
        window_start, window_end = self.clock.window_bounds(day)

        async with self.store.transaction():
            counts = await self.store.count_lane_reservations_between(window_start, window_end)

        rows = [
            SlotRow(
                slot_start=slot,
                counts={lane.id: counts.get((slot, lane.id), 0) for lane in lanes},
            )
            for slot in slots
        ]
        logger.debug("grid_rendered", date=day.isoformat(), slots=len(rows), booked_cells=len(counts))
        return DayGrid(day=day, lanes=lanes, slots=rows)

    async def list_sessions(self) -> list[SessionAvailability]:
        async with self.store.transaction():
            rows = await self.store.list_sessions_with_counts()
        return [SessionAvailability(session=session, reserved=count) for session, count in rows]
