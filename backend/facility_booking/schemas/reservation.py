"""
Pydantic schemas for reservation requests and responses.

A reservation's address is a tagged union: {"kind": "session", ...} or
{"kind": "lane", ...}, never both.
"""

from datetime import date, datetime, time, timedelta
from typing import Annotated, Literal, Union

from pydantic import AwareDatetime, BaseModel, Field, field_validator

from facility_booking.models import LaneBooking, Reservation, SessionBooking


class SessionTarget(BaseModel):
    kind: Literal["session"] = "session"
    session_id: int


class LaneTarget(BaseModel):
    kind: Literal["lane"] = "lane"
    lane_id: int
    slot_start: datetime


ReservationTarget = Annotated[Union[SessionTarget, LaneTarget], Field(discriminator="kind")]


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    target: ReservationTarget
    created_at: datetime

    @classmethod
    def from_model(cls, reservation: Reservation) -> "ReservationResponse":
        target = reservation.target
        if isinstance(target, SessionBooking):
            payload = SessionTarget(session_id=target.session_id)
        elif isinstance(target, LaneBooking):
            payload = LaneTarget(lane_id=target.lane_id, slot_start=target.slot_start)
        else:
            raise TypeError(f"Unsupported booking target: {target!r}")
        return cls(
            id=reservation.id,
            user_id=reservation.user_id,
            target=payload,
            created_at=reservation.created_at,
        )


class LaneSlotReservationCreate(BaseModel):
    slot_start: AwareDatetime


def _offset_from_midnight(value: time) -> timedelta:
    return timedelta(
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


class LaneRangeReservationCreate(BaseModel):
    day: date
    start_time: time = Field(..., examples=["09:00"])
    end_time: time = Field(..., examples=["10:30"])

    @field_validator("start_time", "end_time")
    @classmethod
    def wall_clock_time(cls, value: time) -> time:
        # Times are read on the facility's local clock of `day`
        if value.tzinfo is not None:
            raise ValueError("Give a local wall-clock time without a UTC offset")
        return value

    @property
    def start_offset(self) -> timedelta:
        return _offset_from_midnight(self.start_time)

    @property
    def end_offset(self) -> timedelta:
        return _offset_from_midnight(self.end_time)


class CancelResponse(BaseModel):
    cancelled: bool
