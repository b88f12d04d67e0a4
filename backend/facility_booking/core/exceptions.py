"""
Booking outcomes that are not a plain success.

Every operation of the booking core either returns its result (the "ok"
outcome) or raises one of these. Each class carries an ``outcome`` tag used
for logging, metrics and the HTTP error body. Only StorageError is worth
retrying on the caller side.
"""

from datetime import datetime
from typing import Optional


class BookingError(Exception):
    """Base class for all non-ok booking outcomes."""

    outcome = "error"
    retryable = False

    def __init__(self, message: str, slot_start: Optional[datetime] = None):
        super().__init__(message)
        self.message = message
        self.slot_start = slot_start


class NotFound(BookingError):
    """Referenced lane, session or reservation does not exist."""

    outcome = "not_found"


class AlreadyBooked(BookingError):
    """The user already holds a reservation for this slot or session."""

    outcome = "already_booked"


class Full(BookingError):
    """Capacity of the lane slot or session is exhausted."""

    outcome = "full"


class InvalidRange(BookingError):
    """Malformed request, rejected before any storage access."""

    outcome = "invalid_range"


class StorageError(BookingError):
    """Transaction or connection failure. Nothing was applied."""

    outcome = "storage_error"
    retryable = True


class NotAuthenticated(BookingError):
    outcome = "not_authenticated"


class Forbidden(BookingError):
    outcome = "forbidden"
