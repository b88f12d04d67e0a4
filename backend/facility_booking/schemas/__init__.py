from facility_booking.schemas.availability import LaneResponse, SlotRowResponse, DayGridResponse
from facility_booking.schemas.session import (
    SessionCreate, SessionResponse, SessionAvailabilityResponse, SessionListResponse, SessionDeleteResponse,
)
from facility_booking.schemas.reservation import (
    SessionTarget, LaneTarget, ReservationResponse,
    LaneSlotReservationCreate, LaneRangeReservationCreate, CancelResponse,
)

__all__ = [
    "LaneResponse", "SlotRowResponse", "DayGridResponse",
    "SessionCreate", "SessionResponse", "SessionAvailabilityResponse", "SessionListResponse",
    "SessionDeleteResponse",
    "SessionTarget", "LaneTarget", "ReservationResponse",
    "LaneSlotReservationCreate", "LaneRangeReservationCreate", "CancelResponse",
]
