"""
Lane model: a bookable resource with a per-slot capacity.

Key design decisions:
- Ids are assigned explicitly (1..LANE_COUNT) and never recycled
- `version` column is bumped by every reservation on the lane; it is the
  optimistic-locking guard that serializes concurrent bookings per lane
"""

from sqlalchemy import Column, Integer, String, CheckConstraint

from facility_booking.db.base import Base


class Lane(Base):
    __tablename__ = "lanes"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False, default=1)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_lane_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Lane(id={self.id}, name={self.name}, capacity={self.capacity})>"
