from facility_booking.models.user import Role, User
from facility_booking.models.lane import Lane
from facility_booking.models.group_session import GroupSession
from facility_booking.models.reservation import Reservation, SessionBooking, LaneBooking, BookingTarget

__all__ = [
    "Role", "User", "Lane", "GroupSession",
    "Reservation", "SessionBooking", "LaneBooking", "BookingTarget",
]
