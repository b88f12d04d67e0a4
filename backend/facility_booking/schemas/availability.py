"""
Pydantic schemas for lanes and the daily occupancy grid.
"""

from datetime import date, datetime

from pydantic import BaseModel

from facility_booking.services.availability_service import DayGrid


class LaneResponse(BaseModel):
    id: int
    name: str
    capacity: int

    model_config = {"from_attributes": True}


class SlotRowResponse(BaseModel):
    slot_start: datetime
    counts: dict[int, int]


class DayGridResponse(BaseModel):
    day: date
    lanes: list[LaneResponse]
    slots: list[SlotRowResponse]
    cached: bool = False

    @classmethod
    def from_grid(cls, grid: DayGrid) -> "DayGridResponse":
        return cls(
            day=grid.day,
            lanes=[LaneResponse.model_validate(lane) for lane in grid.lanes],
            slots=[SlotRowResponse(slot_start=row.slot_start, counts=row.counts) for row in grid.slots],
        )
