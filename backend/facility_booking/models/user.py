"""
Users and roles.

Both tables are owned by the identity service; the booking core only
references user ids and branches on role ids.
"""

from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship

from facility_booking.db.base import Base, TimestampMixin


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(50), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name})>"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, default=3)

    role = relationship("Role", lazy="joined")
    reservations = relationship("Reservation", back_populates="user", lazy="raise")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, role={self.role_id})>"
