"""
Group session: a scheduled activity booked as a whole.

Capacity (`available_slots`) is independent of the lane grid. Like lanes,
sessions carry a `version` counter that guards concurrent reservations.
"""

from sqlalchemy import Column, Integer, String, CheckConstraint

from facility_booking.db.base import Base, TimestampMixin, UTCDateTime


class GroupSession(Base, TimestampMixin):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    start = Column("starts_at", UTCDateTime, nullable=False, index=True)
    end = Column("ends_at", UTCDateTime, nullable=False)
    available_slots = Column(Integer, nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("available_slots > 0", name="check_session_slots_positive"),
        CheckConstraint("ends_at > starts_at", name="check_session_end_after_start"),
    )

    def __repr__(self) -> str:
        return f"<GroupSession(id={self.id}, title={self.title}, start={self.start})>"
