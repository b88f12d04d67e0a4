"""
Pydantic schemas for group session request/response validation.
"""

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, Field

from facility_booking.services.availability_service import SessionAvailability


class SessionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    start: AwareDatetime
    end: AwareDatetime
    available_slots: int = Field(default=10, gt=0, le=1000)


class SessionResponse(BaseModel):
    id: int
    title: str
    start: datetime
    end: datetime
    available_slots: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionAvailabilityResponse(SessionResponse):
    reserved: int
    remaining: int

    @classmethod
    def from_availability(cls, item: SessionAvailability) -> "SessionAvailabilityResponse":
        return cls(
            **SessionResponse.model_validate(item.session).model_dump(),
            reserved=item.reserved,
            remaining=item.remaining,
        )


class SessionListResponse(BaseModel):
    sessions: list[SessionAvailabilityResponse]
    total: int
    cached: bool = False


class SessionDeleteResponse(BaseModel):
    message: str
    session_id: int
    reservations_removed: int
