"""
Persistence boundary consumed by the booking core.
Allows swapping the storage implementation without changing booking rules.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from facility_booking.models import BookingTarget, GroupSession, Lane, Reservation, SessionBooking


@dataclass(frozen=True)
class ReservationFilter:
    """
    Selects reservations by address and, optionally, owner.

    A session filter only matches session-mode rows and a lane filter only
    lane-mode rows, so the two addressing modes never count against each other.
    """

    target: BookingTarget
    user_id: Optional[int] = None

    @classmethod
    def for_target(cls, target: BookingTarget, user_id: Optional[int] = None) -> "ReservationFilter":
        return cls(target=target, user_id=user_id)

    @property
    def is_session(self) -> bool:
        return isinstance(self.target, SessionBooking)


class ReservationStore(ABC):
    """
    Storage operations used by ResourceCatalog, AvailabilityView and
    BookingEngine. Calls made inside ``transaction()`` commit together or
    not at all.

    Implementations:
    - SqlReservationStore: SQLAlchemy async session (PostgreSQL / SQLite)
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager["ReservationStore"]:
        """Commit on normal exit, roll back on any exception."""

    # Lanes

    @abstractmethod
    async def find_resource(self, lane_id: int, lock: bool = False) -> Optional[Lane]:
        """
        With ``lock`` the lane row stays locked until the transaction ends,
        so writers on the same lane queue instead of racing the version check.
        """

    @abstractmethod
    async def list_resources(self, limit: int) -> list[Lane]:
        """Lanes ascending by id, at most ``limit``."""

    @abstractmethod
    async def list_resource_ids(self) -> set[int]:
        pass

    @abstractmethod
    async def insert_resources(self, batch: Sequence[Lane]) -> None:
        pass

    @abstractmethod
    async def claim_resource(self, lane_id: int, version: int) -> bool:
        """
        Bump the lane's version if it still equals ``version``.
        False means another writer committed first.
        """

    # Sessions

    @abstractmethod
    async def find_session(self, session_id: int, lock: bool = False) -> Optional[GroupSession]:
        pass

    @abstractmethod
    async def insert_session(self, session: GroupSession) -> GroupSession:
        pass

    @abstractmethod
    async def claim_session(self, session_id: int, version: int) -> bool:
        pass

    @abstractmethod
    async def list_sessions_with_counts(self) -> list[tuple[GroupSession, int]]:
        """Sessions ordered by start with their session-mode reservation counts."""

    @abstractmethod
    async def delete_session(self, session_id: int) -> bool:
        pass

    # Reservations

    @abstractmethod
    async def count_reservations(self, reservation_filter: ReservationFilter) -> int:
        pass

    @abstractmethod
    async def find_reservation(self, reservation_filter: ReservationFilter) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def insert_reservation(self, user_id: int, target: BookingTarget) -> Reservation:
        pass

    @abstractmethod
    async def delete_reservation(self, reservation_id: int) -> bool:
        pass

    @abstractmethod
    async def delete_reservations_by_session(self, session_id: int) -> int:
        pass

    @abstractmethod
    async def count_lane_reservations_between(
        self, start: datetime, end: datetime
    ) -> dict[tuple[datetime, int], int]:
        """
        Lane-mode reservations with ``start <= slot_start < end`` in one read,
        counted per (slot_start, lane_id). Cells without bookings are absent.
        """

    @abstractmethod
    async def list_user_reservations(self, user_id: int) -> list[Reservation]:
        pass
