"""
Reservation model: one user's booking of either a group session or a
single lane slot.

Key design decisions:
- The address is a tagged value, SessionBooking | LaneBooking; rows are only
  built from one through `Reservation.for_target`, and the CHECK constraint
  mirrors the same exclusivity at the storage level
- Unique constraints on (lane_id, slot_start, user_id) and (session_id, user_id)
  make a duplicate booking race lose at the database, not in application code
- Reservations are deleted on cancel (no status column)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship

from facility_booking.db.base import Base, UTCDateTime, utcnow


@dataclass(frozen=True)
class SessionBooking:
    session_id: int


@dataclass(frozen=True)
class LaneBooking:
    lane_id: int
    slot_start: datetime


BookingTarget = Union[SessionBooking, LaneBooking]


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=True, index=True)
    lane_id = Column(Integer, ForeignKey("lanes.id"), nullable=True)
    slot_start = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="reservations")

    __table_args__ = (
        CheckConstraint(
            "(session_id IS NOT NULL AND lane_id IS NULL AND slot_start IS NULL)"
            " OR (session_id IS NULL AND lane_id IS NOT NULL AND slot_start IS NOT NULL)",
            name="check_reservation_single_target",
        ),
        UniqueConstraint("lane_id", "slot_start", "user_id", name="uq_lane_slot_user"),
        UniqueConstraint("session_id", "user_id", name="uq_session_user"),
        # Grid rendering reads a whole day of one lane set by slot_start
        Index("ix_reservations_slot_lane", "slot_start", "lane_id"),
    )

    @classmethod
    def for_target(cls, user_id: int, target: BookingTarget) -> "Reservation":
        if isinstance(target, SessionBooking):
            return cls(user_id=user_id, session_id=target.session_id)
        if isinstance(target, LaneBooking):
            return cls(user_id=user_id, lane_id=target.lane_id, slot_start=target.slot_start)
        raise TypeError(f"Unsupported booking target: {target!r}")

    @property
    def target(self) -> BookingTarget:
        if self.session_id is not None:
            return SessionBooking(session_id=self.session_id)
        return LaneBooking(lane_id=self.lane_id, slot_start=self.slot_start)

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, user={self.user_id}, target={self.target})>"
