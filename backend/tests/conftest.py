"""
Pytest fixtures for test database, booking core, client, and authentication.

Every test gets its own SQLite file so independent sessions (and so truly
concurrent transactions) can be opened against it. Redis is disabled.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FACILITY_TIMEZONE", "Europe/Warsaw")

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from facility_booking.main import app
from facility_booking.db.base import Base
from facility_booking.db.session import build_engine, build_sessionmaker, get_db
from facility_booking.core.security import (
    ROLE_ADMINISTRATOR,
    ROLE_NAMES,
    ROLE_TRAINER,
    ROLE_USER,
    AuthContext,
    create_access_token,
)
from facility_booking.infrastructure.sql_store import SqlReservationStore
from facility_booking.models import GroupSession, Lane, Reservation, Role, User
from facility_booking.services.availability_service import AvailabilityView
from facility_booking.services.booking_service import BookingEngine
from facility_booking.services.catalog_service import ResourceCatalog
from facility_booking.services.slot_clock import SlotClock

WARSAW = ZoneInfo("Europe/Warsaw")

TUESDAY = date(2026, 10, 20)
SATURDAY = date(2026, 10, 24)
# Central European Summer Time ends at 03:00 on this Sunday
DST_SUNDAY = date(2026, 10, 25)

ADMIN_ID = 100
TRAINER_ID = 200


def local(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant of a Warsaw wall-clock time."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=WARSAW).astimezone(timezone.utc)


def auth_headers(user_id: int, role_id: int = ROLE_USER) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role_id)}"}


def seed_users(conn) -> None:
    """Roles plus the user ids the tests act as: 1-20 users, 100 admin, 200 trainer."""
    conn.execute(insert(Role), [{"id": role_id, "name": name} for role_id, name in ROLE_NAMES.items()])
    accounts = [(user_id, ROLE_USER) for user_id in range(1, 21)]
    accounts += [(ADMIN_ID, ROLE_ADMINISTRATOR), (TRAINER_ID, ROLE_TRAINER)]
    conn.execute(insert(User), [
        {"id": user_id, "email": f"user{user_id}@example.com", "username": f"user{user_id}", "role_id": role_id}
        for user_id, role_id in accounts
    ])


def _database_url(backend: str, tmp_path) -> str:
    if backend == "sqlite":
        return f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}"
    url = os.environ.get("TEST_POSTGRES_URL")
    if not url:
        pytest.skip("TEST_POSTGRES_URL not set")
    return url


@pytest_asyncio.fixture
async def db_engine(request, tmp_path):
    """
    SQLite file per test by default. Tests parametrized indirectly with
    "postgresql" run against TEST_POSTGRES_URL (an asyncpg URL of a scratch
    database, wiped before and after each test).
    """
    backend = getattr(request, "param", "sqlite")
    engine = build_engine(_database_url(backend, tmp_path))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(seed_users)
    yield engine
    if backend != "sqlite":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_sessionmaker(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> SlotClock:
    return SlotClock(WARSAW)


@pytest.fixture
def store(db_session: AsyncSession) -> SqlReservationStore:
    return SqlReservationStore(db_session)


@pytest_asyncio.fixture
async def catalog(store: SqlReservationStore) -> ResourceCatalog:
    """Catalog with the six default lanes already materialized."""
    catalog = ResourceCatalog(store, expected_count=6, default_capacity=1)
    await catalog.ensure_default_resources()
    return catalog


@pytest.fixture
def booking(store: SqlReservationStore, clock: SlotClock, catalog: ResourceCatalog) -> BookingEngine:
    return BookingEngine(store, clock)


@pytest.fixture
def availability(store: SqlReservationStore, clock: SlotClock, catalog: ResourceCatalog) -> AvailabilityView:
    return AvailabilityView(store, clock, catalog)


@pytest.fixture
def isolated_booking(session_factory, clock, catalog):
    """Factory of booking engines, each on its own session and connection."""

    @asynccontextmanager
    async def factory():
        async with session_factory() as session:
            yield BookingEngine(SqlReservationStore(session), clock)

    return factory


@pytest.fixture
def user():
    """AuthContext for a regular user id."""
    return lambda user_id: AuthContext(user_id=user_id, role_id=ROLE_USER)


@pytest_asyncio.fixture
async def set_lane_capacity(db_session: AsyncSession, catalog):
    async def setter(lane_id: int, capacity: int) -> None:
        await db_session.execute(update(Lane).where(Lane.id == lane_id).values(capacity=capacity))
        await db_session.commit()

    return setter


@pytest_asyncio.fixture
async def group_session(session_factory) -> GroupSession:
    """Session id 7 with two places, detached from the test session."""
    session = GroupSession(
        id=7,
        title="Aqua aerobics",
        start=local(TUESDAY, 18),
        end=local(TUESDAY, 19),
        available_slots=2,
    )
    async with session_factory() as db:
        db.add(session)
        await db.commit()
    return session


@pytest_asyncio.fixture
async def client(session_factory, catalog) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get a fresh session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def reservation_count(session_factory):
    """Count persisted reservations from a fresh session, optionally filtered by column."""

    async def counter(**filters) -> int:
        conditions = [getattr(Reservation, column) == value for column, value in filters.items()]
        async with session_factory() as session:
            result = await session.execute(select(func.count(Reservation.id)).where(*conditions))
            return result.scalar_one()

    return counter
