"""
Booking engine with concurrency-safe lane and session reservations.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two users try to book the last place in a lane slot simultaneously.
  Both count 0 reservations against capacity 1, both insert.
  Result: Overbooking.

Solution:
  Every reservation bumps a `version` column on its parent row (the lane,
  or the group session) inside the same transaction as its checks and insert.

  1. Read the lane and its current version, locking the row (FOR UPDATE)
  2. Check duplicate (AlreadyBooked) and capacity (Full) for every slot
  3. UPDATE lanes SET version = version + 1
     WHERE id = :lane_id AND version = :current_version
  4. If rows_affected == 0, someone else booked on this lane -> roll back, retry
  5. Insert the reservation rows, commit

  On PostgreSQL the row lock makes writers on one lane or session wait for
  each other, so bookings of unrelated slots on a busy lane do not fail.
  The version check is the commit-time guard: a writer whose checks ran
  against a state that changed before it reached step 3 cannot commit, and
  the retry (after a short jittered backoff) re-runs the checks.
  A range of slots is validated and inserted under a single version bump, so
  no booking can slip into the middle of a range being reserved.

  The unique constraints on (lane_id, slot_start, user_id) and
  (session_id, user_id) are the final safety net for duplicates: a losing
  writer's IntegrityError is reported as AlreadyBooked.

Every operation is one transaction: it commits all of its writes or none.
"""

import asyncio
import random
from datetime import date, datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError

from facility_booking.core.config import get_settings
from facility_booking.core.exceptions import AlreadyBooked, Full, InvalidRange, NotFound, StorageError
from facility_booking.core.logging import get_logger
from facility_booking.core.metrics import measure_operation, record_retry
from facility_booking.core.security import AuthContext
from facility_booking.models import GroupSession, LaneBooking, Reservation, SessionBooking
from facility_booking.services.interfaces import ReservationFilter, ReservationStore
from facility_booking.services.slot_clock import (
    SLOT_LENGTH,
    SlotClock,
    is_grid_offset,
    operating_window,
)

logger = get_logger(__name__)

T = TypeVar("T")

DUPLICATE_CONSTRAINTS = ("uq_lane_slot_user", "uq_session_user")


class VersionConflict(Exception):
    """Another transaction committed a booking on the same lane or session."""


def _is_duplicate(exc: IntegrityError) -> bool:
    text = str(getattr(exc, "orig", exc))
    if any(name in text for name in DUPLICATE_CONSTRAINTS):
        return True
    # SQLite reports the columns, not the constraint name
    return "UNIQUE constraint failed: reservations." in text


def _local_time(clock: SlotClock, instant: datetime) -> str:
    return instant.astimezone(clock.tz).strftime("%H:%M")


class BookingEngine:

    def __init__(self, store: ReservationStore, clock: SlotClock, max_retries: Optional[int] = None):
        self.store = store
        self.clock = clock
        settings = get_settings()
        self.max_retries = max_retries or settings.BOOKING_MAX_RETRIES
        self.retry_backoff = settings.BOOKING_RETRY_BACKOFF_MS / 1000

    def _backoff(self, attempt_no: int) -> float:
        """Seconds to wait before retry ``attempt_no + 1``: doubling base, full jitter."""
        ceiling = self.retry_backoff * (2 ** (attempt_no - 1))
        return random.uniform(0, ceiling)

    async def _run(self, operation: str, attempt: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``attempt`` in a transaction, retrying on version conflicts.
        Retries up to max_retries before giving up with StorageError.
        """
        for attempt_no in range(1, self.max_retries + 1):
            try:
                async with self.store.transaction():
                    return await attempt()
            except VersionConflict:
                record_retry(operation)
                logger.info(
                    "booking_retry",
                    operation=operation,
                    attempt=attempt_no,
                    reason="version_conflict",
                )
                if attempt_no < self.max_retries:
                    await asyncio.sleep(self._backoff(attempt_no))
            except IntegrityError as e:
                if _is_duplicate(e):
                    logger.info("booking_duplicate_rejected", operation=operation)
                    raise AlreadyBooked("You already have this reservation") from e
                logger.error("booking_integrity_error", operation=operation, error=str(e))
                raise StorageError("Reservation could not be stored") from e
            except DBAPIError as e:
                logger.error("booking_storage_error", operation=operation, error=str(e))
                raise StorageError("Storage is unavailable, please try again") from e

        raise StorageError("Booking failed due to high demand. Please try again.")

    # Lane slots

    @measure_operation("reserve_lane_slot")
    async def reserve_lane_slot(self, auth: AuthContext, lane_id: int, slot_start: datetime) -> Reservation:
        """Reserve one half-hour slot on a lane."""
        user_id = auth.require_user()
        if not self.clock.is_slot_instant(slot_start):
            raise InvalidRange("Slot start is not a bookable half-hour slot", slot_start=slot_start)

        slot_start = slot_start.astimezone(timezone.utc)
        reservations = await self._reserve_lane_slots("reserve_lane_slot", user_id, lane_id, [slot_start])
        return reservations[0]

    @measure_operation("reserve_lane_range")
    async def reserve_lane_range(
        self,
        auth: AuthContext,
        lane_id: int,
        day: date,
        start_offset: timedelta,
        end_offset: timedelta,
    ) -> list[Reservation]:
        """
        Reserve every slot from ``start_offset`` up to ``end_offset`` (offsets
        from local midnight of ``day``). All slots are booked or none are.
        """
        user_id = auth.require_user()
        self._validate_range(day, start_offset, end_offset)
        slots = self.clock.slots_between(day, start_offset, end_offset)
        return await self._reserve_lane_slots("reserve_lane_range", user_id, lane_id, slots)

    def _validate_range(self, day: date, start_offset: timedelta, end_offset: timedelta) -> None:
        if start_offset < timedelta(0):
            raise InvalidRange("Start time must not be negative")
        if end_offset <= start_offset or end_offset - start_offset < SLOT_LENGTH:
            raise InvalidRange("Range must cover at least one 30 minute slot")
        if not is_grid_offset(start_offset) or not is_grid_offset(end_offset):
            raise InvalidRange("Times must be given in 30 minute steps")
        open_offset, close_offset = operating_window(day)
        if start_offset < open_offset or end_offset > close_offset:
            raise InvalidRange("Range is outside opening hours")

    async def _reserve_lane_slots(
        self,
        operation: str,
        user_id: int,
        lane_id: int,
        slots: list[datetime],
    ) -> list[Reservation]:

        async def attempt() -> list[Reservation]:
            lane = await self.store.find_resource(lane_id, lock=True)
            if lane is None:
                raise NotFound(f"Lane {lane_id} not found")

            # Validate the whole range before the first insert
            for slot in slots:
                target = LaneBooking(lane_id=lane_id, slot_start=slot)
                if await self.store.find_reservation(ReservationFilter.for_target(target, user_id)):
                    raise AlreadyBooked(
                        f"You already have a reservation at {_local_time(self.clock, slot)}",
                        slot_start=slot,
                    )
                count = await self.store.count_reservations(ReservationFilter.for_target(target))
                if count >= lane.capacity:
                    logger.warning(
                        "booking_failed_full",
                        lane_id=lane_id,
                        slot_start=slot.isoformat(),
                        capacity=lane.capacity,
                    )
                    raise Full(f"Lane is full at {_local_time(self.clock, slot)}", slot_start=slot)

            if not await self.store.claim_resource(lane.id, lane.version):
                raise VersionConflict()

            return [
                await self.store.insert_reservation(user_id, LaneBooking(lane_id=lane_id, slot_start=slot))
                for slot in slots
            ]

        reservations = await self._run(operation, attempt)
        logger.info(
            "lane_reserved",
            user_id=user_id,
            lane_id=lane_id,
            first_slot=slots[0].isoformat(),
            slots=len(slots),
            reservation_ids=[r.id for r in reservations],
        )
        return reservations

    @measure_operation("cancel_lane_slot")
    async def cancel_lane_slot(self, auth: AuthContext, lane_id: int, slot_start: datetime) -> bool:
        """Remove the acting user's own reservation of one lane slot, if any."""
        user_id = auth.require_user()
        target = LaneBooking(lane_id=lane_id, slot_start=slot_start.astimezone(timezone.utc))
        return await self._cancel_target("cancel_lane_slot", user_id, target)

    # Group sessions

    @measure_operation("create_session")
    async def create_session(
        self,
        auth: AuthContext,
        title: str,
        start: datetime,
        end: datetime,
        available_slots: int,
    ) -> GroupSession:
        """Create a group session; start and end are snapped down to the local half-hour grid."""
        auth.require_user()
        title = title.strip()
        if not title:
            raise InvalidRange("Session title must not be empty")
        start = self.clock.align_to_grid(start)
        end = self.clock.align_to_grid(end)
        if end <= start:
            raise InvalidRange("Session must end after it starts")
        if available_slots <= 0:
            raise InvalidRange("Session needs at least one place")

        async def attempt() -> GroupSession:
            return await self.store.insert_session(
                GroupSession(title=title, start=start, end=end, available_slots=available_slots)
            )

        session = await self._run("create_session", attempt)
        logger.info(
            "session_created",
            session_id=session.id,
            created_by=auth.user_id,
            start=start.isoformat(),
            places=available_slots,
        )
        return session

    async def get_session(self, session_id: int) -> GroupSession:
        async with self.store.transaction():
            session = await self.store.find_session(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        return session

    @measure_operation("reserve_session")
    async def reserve_session(self, auth: AuthContext, session_id: int) -> Reservation:
        """
        Reserve a place in a group session. Who may call this (trainers may
        not) is decided by the caller; the engine only guards capacity and
        duplicates.
        """
        user_id = auth.require_user()
        target = SessionBooking(session_id=session_id)

        async def attempt() -> Reservation:
            session = await self.store.find_session(session_id, lock=True)
            if session is None:
                raise NotFound(f"Session {session_id} not found")
            if await self.store.find_reservation(ReservationFilter.for_target(target, user_id)):
                raise AlreadyBooked("You already have a reservation for this session")
            reserved = await self.store.count_reservations(ReservationFilter.for_target(target))
            if reserved >= session.available_slots:
                logger.warning(
                    "booking_failed_full",
                    session_id=session_id,
                    capacity=session.available_slots,
                )
                raise Full("No available places in this session")
            if not await self.store.claim_session(session.id, session.version):
                raise VersionConflict()
            return await self.store.insert_reservation(user_id, target)

        reservation = await self._run("reserve_session", attempt)
        logger.info("session_reserved", reservation_id=reservation.id, user_id=user_id, session_id=session_id)
        return reservation

    @measure_operation("cancel_session")
    async def cancel_session(self, auth: AuthContext, session_id: int) -> bool:
        """Remove the acting user's own reservation of a session, if any."""
        user_id = auth.require_user()
        return await self._cancel_target("cancel_session", user_id, SessionBooking(session_id=session_id))

    @measure_operation("delete_session")
    async def delete_session(self, auth: AuthContext, session_id: int) -> int:
        """
        Delete a session together with its reservations, reservations first.
        Returns the number of reservations removed.
        """
        auth.require_user()

        async def attempt() -> int:
            session = await self.store.find_session(session_id, lock=True)
            if session is None:
                raise NotFound(f"Session {session_id} not found")
            removed = await self.store.delete_reservations_by_session(session_id)
            await self.store.delete_session(session_id)
            return removed

        removed = await self._run("delete_session", attempt)
        logger.info("session_deleted", session_id=session_id, deleted_by=auth.user_id, reservations_removed=removed)
        return removed

    # Reservations

    @measure_operation("cancel")
    async def cancel(self, auth: AuthContext, reservation_id: int) -> bool:
        """
        Delete a reservation by id if it belongs to the acting user.
        Returns whether one was deleted; repeating the call is harmless.
        """
        user_id = auth.require_user()

        async def attempt() -> bool:
            reservation = await self.store.get_reservation(reservation_id)
            if reservation is None:
                return False
            if reservation.user_id != user_id:
                logger.warning(
                    "cancel_denied_not_owner",
                    reservation_id=reservation_id,
                    user_id=user_id,
                )
                return False
            return await self.store.delete_reservation(reservation_id)

        cancelled = await self._run("cancel", attempt)
        if cancelled:
            logger.info("reservation_cancelled", reservation_id=reservation_id, user_id=user_id)
        return cancelled

    async def _cancel_target(self, operation: str, user_id: int, target) -> bool:

        async def attempt() -> bool:
            reservation = await self.store.find_reservation(ReservationFilter.for_target(target, user_id))
            if reservation is None:
                return False
            return await self.store.delete_reservation(reservation.id)

        cancelled = await self._run(operation, attempt)
        if cancelled:
            logger.info("reservation_cancelled", user_id=user_id, target=str(target))
        return cancelled

    async def list_user_reservations(self, auth: AuthContext) -> list[Reservation]:
        """All reservations of the acting user, newest first."""
        user_id = auth.require_user()
        async with self.store.transaction():
            return await self.store.list_user_reservations(user_id)
