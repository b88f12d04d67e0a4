"""
SQLAlchemy implementation of the ReservationStore boundary.

Lookups that feed a booking decision use populate_existing so a long-lived
session never hands back a lane or session with a stale version counter.
Locked lookups add SELECT ... FOR UPDATE; SQLite has no row locks and
relies on its BEGIN IMMEDIATE transactions instead.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy import Select, and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from facility_booking.models import (
    BookingTarget,
    GroupSession,
    Lane,
    Reservation,
    SessionBooking,
)
from facility_booking.services.interfaces.reservation_store import ReservationFilter, ReservationStore


def lane_lookup(lane_id: int, lock: bool = False) -> Select:
    stmt = select(Lane).where(Lane.id == lane_id).execution_options(populate_existing=True)
    return stmt.with_for_update() if lock else stmt


def session_lookup(session_id: int, lock: bool = False) -> Select:
    stmt = (
        select(GroupSession)
        .where(GroupSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    return stmt.with_for_update() if lock else stmt


class SqlReservationStore(ReservationStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlReservationStore"]:
        try:
            yield self
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    # Lanes

    async def find_resource(self, lane_id: int, lock: bool = False) -> Optional[Lane]:
        result = await self.db.execute(lane_lookup(lane_id, lock))
        return result.scalar_one_or_none()

    async def list_resources(self, limit: int) -> list[Lane]:
        result = await self.db.execute(select(Lane).order_by(Lane.id.asc()).limit(limit))
        return list(result.scalars().all())

    async def list_resource_ids(self) -> set[int]:
        result = await self.db.execute(select(Lane.id))
        return set(result.scalars().all())

    async def insert_resources(self, batch: Sequence[Lane]) -> None:
        self.db.add_all(batch)
        await self.db.flush()

    async def claim_resource(self, lane_id: int, version: int) -> bool:
        result = await self.db.execute(
            update(Lane)
            .where(Lane.id == lane_id, Lane.version == version)
            .values(version=Lane.version + 1)
        )
        return result.rowcount == 1

    # Sessions

    async def find_session(self, session_id: int, lock: bool = False) -> Optional[GroupSession]:
        result = await self.db.execute(session_lookup(session_id, lock))
        return result.scalar_one_or_none()

    async def insert_session(self, session: GroupSession) -> GroupSession:
        self.db.add(session)
        await self.db.flush()
        await self.db.refresh(session)
        return session

    async def claim_session(self, session_id: int, version: int) -> bool:
        result = await self.db.execute(
            update(GroupSession)
            .where(GroupSession.id == session_id, GroupSession.version == version)
            .values(version=GroupSession.version + 1)
        )
        return result.rowcount == 1

    async def list_sessions_with_counts(self) -> list[tuple[GroupSession, int]]:
        result = await self.db.execute(
            select(GroupSession, func.count(Reservation.id))
            .outerjoin(
                Reservation,
                and_(Reservation.session_id == GroupSession.id, Reservation.lane_id.is_(None)),
            )
            .group_by(GroupSession.id)
            .order_by(GroupSession.start.asc(), GroupSession.id.asc())
        )
        return [(session, count) for session, count in result.all()]

    async def delete_session(self, session_id: int) -> bool:
        result = await self.db.execute(delete(GroupSession).where(GroupSession.id == session_id))
        return result.rowcount > 0

    # Reservations

    def _conditions(self, reservation_filter: ReservationFilter) -> list:
        target = reservation_filter.target
        if isinstance(target, SessionBooking):
            conditions = [Reservation.session_id == target.session_id, Reservation.lane_id.is_(None)]
        else:
            conditions = [Reservation.lane_id == target.lane_id, Reservation.slot_start == target.slot_start]
        if reservation_filter.user_id is not None:
            conditions.append(Reservation.user_id == reservation_filter.user_id)
        return conditions

    async def count_reservations(self, reservation_filter: ReservationFilter) -> int:
        result = await self.db.execute(
            select(func.count(Reservation.id)).where(*self._conditions(reservation_filter))
        )
        return result.scalar_one()

    async def find_reservation(self, reservation_filter: ReservationFilter) -> Optional[Reservation]:
        result = await self.db.execute(
            select(Reservation).where(*self._conditions(reservation_filter)).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_reservation(self, reservation_id: int) -> Optional[Reservation]:
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def insert_reservation(self, user_id: int, target: BookingTarget) -> Reservation:
        reservation = Reservation.for_target(user_id, target)
        self.db.add(reservation)
        await self.db.flush()
        return reservation

    async def delete_reservation(self, reservation_id: int) -> bool:
        result = await self.db.execute(delete(Reservation).where(Reservation.id == reservation_id))
        return result.rowcount > 0

    async def delete_reservations_by_session(self, session_id: int) -> int:
        result = await self.db.execute(delete(Reservation).where(Reservation.session_id == session_id))
        return result.rowcount

    async def count_lane_reservations_between(
        self, start: datetime, end: datetime
    ) -> dict[tuple[datetime, int], int]:
        result = await self.db.execute(
            select(Reservation.slot_start, Reservation.lane_id, func.count(Reservation.id))
            .where(
                Reservation.lane_id.is_not(None),
                Reservation.slot_start >= start,
                Reservation.slot_start < end,
            )
            .group_by(Reservation.slot_start, Reservation.lane_id)
        )
        return {(slot_start, lane_id): count for slot_start, lane_id, count in result.all()}

    async def list_user_reservations(self, user_id: int) -> list[Reservation]:
        result = await self.db.execute(
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
        )
        return list(result.scalars().all())
