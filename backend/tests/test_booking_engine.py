"""
Tests for lane and session reservations through the booking engine.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError, InvalidRequestError

from facility_booking.core.exceptions import (
    AlreadyBooked,
    Full,
    InvalidRange,
    NotAuthenticated,
    NotFound,
    StorageError,
)
from facility_booking.core.security import ANONYMOUS
from facility_booking.models import LaneBooking, SessionBooking, User
from tests.conftest import ADMIN_ID, SATURDAY, TUESDAY, local


def hours(h: int, m: int = 0) -> timedelta:
    return timedelta(hours=h, minutes=m)


# Lane slots

@pytest.mark.asyncio
async def test_reserve_cancel_and_rebook_lane_slot(booking, availability, user):
    """A full slot opens up again once its holder cancels."""
    slot = local(TUESDAY, 9)
    alice, bob = user(1), user(2)

    reservation = await booking.reserve_lane_slot(alice, 3, slot)
    assert reservation.target == LaneBooking(lane_id=3, slot_start=slot)
    assert reservation.user_id == 1

    with pytest.raises(Full) as exc_info:
        await booking.reserve_lane_slot(bob, 3, slot)
    assert exc_info.value.slot_start == slot

    assert await booking.cancel_lane_slot(alice, 3, slot) is True
    grid = await availability.render(TUESDAY)
    assert grid.count(slot, 3) == 0

    rebooked = await booking.reserve_lane_slot(bob, 3, slot)
    assert rebooked.user_id == 2


@pytest.mark.asyncio
async def test_reserve_same_slot_twice(booking, user, set_lane_capacity):
    """AlreadyBooked is reported even when capacity would allow another place."""
    await set_lane_capacity(1, 4)
    slot = local(TUESDAY, 12, 30)

    await booking.reserve_lane_slot(user(1), 1, slot)
    with pytest.raises(AlreadyBooked) as exc_info:
        await booking.reserve_lane_slot(user(1), 1, slot)
    assert exc_info.value.slot_start == slot


@pytest.mark.asyncio
async def test_already_booked_wins_over_full(booking, user):
    slot = local(TUESDAY, 8)
    await booking.reserve_lane_slot(user(1), 1, slot)

    with pytest.raises(AlreadyBooked):
        await booking.reserve_lane_slot(user(1), 1, slot)


@pytest.mark.asyncio
async def test_capacity_is_per_lane(booking, user):
    slot = local(TUESDAY, 10)
    await booking.reserve_lane_slot(user(1), 1, slot)

    reservation = await booking.reserve_lane_slot(user(2), 2, slot)
    assert reservation.target.lane_id == 2


@pytest.mark.asyncio
async def test_reserve_unknown_lane(booking, user):
    with pytest.raises(NotFound):
        await booking.reserve_lane_slot(user(1), 99, local(TUESDAY, 10))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "slot",
    [
        local(TUESDAY, 10, 15),
        local(TUESDAY, 22),
        local(TUESDAY, 5, 30),
        local(SATURDAY, 6, 30),
    ],
)
async def test_reserve_slot_off_grid(booking, user, reservation_count, slot):
    with pytest.raises(InvalidRange):
        await booking.reserve_lane_slot(user(1), 1, slot)
    assert await reservation_count() == 0


@pytest.mark.asyncio
async def test_anonymous_cannot_reserve(booking):
    with pytest.raises(NotAuthenticated):
        await booking.reserve_lane_slot(ANONYMOUS, 1, local(TUESDAY, 10))


@pytest.mark.asyncio
async def test_cancel_lane_slot_without_reservation(booking, user):
    assert await booking.cancel_lane_slot(user(1), 1, local(TUESDAY, 10)) is False


# Lane ranges

@pytest.mark.asyncio
async def test_reserve_range(booking, user, reservation_count):
    reservations = await booking.reserve_lane_range(user(1), 2, TUESDAY, hours(9), hours(10, 30))

    assert [r.slot_start for r in reservations] == [
        local(TUESDAY, 9),
        local(TUESDAY, 9, 30),
        local(TUESDAY, 10),
    ]
    assert await reservation_count(user_id=1) == 3


@pytest.mark.asyncio
async def test_range_is_all_or_nothing(booking, user, reservation_count):
    """One full slot in the middle rejects the whole range."""
    await booking.reserve_lane_slot(user(2), 2, local(TUESDAY, 9, 30))

    with pytest.raises(Full) as exc_info:
        await booking.reserve_lane_range(user(1), 2, TUESDAY, hours(9), hours(10, 30))

    assert exc_info.value.slot_start == local(TUESDAY, 9, 30)
    assert await reservation_count(user_id=1) == 0
    assert await reservation_count(lane_id=2) == 1


@pytest.mark.asyncio
async def test_range_overlapping_own_reservation(booking, user, reservation_count):
    await booking.reserve_lane_slot(user(1), 2, local(TUESDAY, 10))

    with pytest.raises(AlreadyBooked) as exc_info:
        await booking.reserve_lane_range(user(1), 2, TUESDAY, hours(9), hours(11))

    assert exc_info.value.slot_start == local(TUESDAY, 10)
    assert await reservation_count(user_id=1) == 1


@pytest.mark.asyncio
async def test_range_on_weekend_edges(booking, user):
    reservations = await booking.reserve_lane_range(user(1), 1, SATURDAY, hours(20), hours(21))

    assert [r.slot_start for r in reservations] == [local(SATURDAY, 20), local(SATURDAY, 20, 30)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "day,start,end",
    [
        (TUESDAY, hours(10), hours(10)),
        (TUESDAY, hours(11), hours(10)),
        (TUESDAY, hours(10), hours(10, 15)),
        (TUESDAY, hours(9, 15), hours(10, 15)),
        (TUESDAY, hours(5), hours(6, 30)),
        (TUESDAY, hours(21), hours(22, 30)),
        (SATURDAY, hours(6, 30), hours(7, 30)),
        (TUESDAY, -hours(1), hours(7)),
    ],
)
async def test_invalid_ranges(booking, user, reservation_count, day, start, end):
    with pytest.raises(InvalidRange):
        await booking.reserve_lane_range(user(1), 1, day, start, end)
    assert await reservation_count() == 0


@pytest.mark.asyncio
async def test_range_on_unknown_lane(booking, user):
    with pytest.raises(NotFound):
        await booking.reserve_lane_range(user(1), 42, TUESDAY, hours(9), hours(10))


# Group sessions

@pytest.mark.asyncio
async def test_session_lifecycle(booking, user, group_session, reservation_count):
    """Two places fill up; deleting the session removes its reservations."""
    first = await booking.reserve_session(user(1), group_session.id)
    assert first.target == SessionBooking(session_id=7)
    await booking.reserve_session(user(2), group_session.id)

    with pytest.raises(AlreadyBooked):
        await booking.reserve_session(user(1), group_session.id)
    with pytest.raises(Full):
        await booking.reserve_session(user(3), group_session.id)

    removed = await booking.delete_session(user(ADMIN_ID), group_session.id)
    assert removed == 2
    assert await reservation_count(session_id=7) == 0

    with pytest.raises(NotFound):
        await booking.reserve_session(user(3), group_session.id)
    with pytest.raises(NotFound):
        await booking.get_session(group_session.id)


@pytest.mark.asyncio
async def test_cancel_session_frees_place(booking, user, group_session):
    await booking.reserve_session(user(1), group_session.id)
    await booking.reserve_session(user(2), group_session.id)

    assert await booking.cancel_session(user(1), group_session.id) is True
    assert await booking.cancel_session(user(1), group_session.id) is False

    reservation = await booking.reserve_session(user(3), group_session.id)
    assert reservation.user_id == 3


@pytest.mark.asyncio
async def test_reserve_unknown_session(booking, user):
    with pytest.raises(NotFound):
        await booking.reserve_session(user(1), 404)


@pytest.mark.asyncio
async def test_delete_unknown_session(booking, user):
    with pytest.raises(NotFound):
        await booking.delete_session(user(ADMIN_ID), 404)


@pytest.mark.asyncio
async def test_create_session_aligns_to_grid(booking, user):
    session = await booking.create_session(
        user(ADMIN_ID),
        "  Water polo  ",
        local(TUESDAY, 18, 10),
        local(TUESDAY, 19, 45),
        12,
    )

    assert session.id is not None
    assert session.title == "Water polo"
    assert session.start == local(TUESDAY, 18)
    assert session.end == local(TUESDAY, 19, 30)

    fetched = await booking.get_session(session.id)
    assert fetched.available_slots == 12


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "title,start,end,places",
    [
        ("", local(TUESDAY, 18), local(TUESDAY, 19), 5),
        ("Sprint", local(TUESDAY, 19), local(TUESDAY, 18), 5),
        ("Sprint", local(TUESDAY, 18, 5), local(TUESDAY, 18, 20), 5),
        ("Sprint", local(TUESDAY, 18), local(TUESDAY, 19), 0),
    ],
)
async def test_create_session_invalid(booking, user, title, start, end, places):
    with pytest.raises(InvalidRange):
        await booking.create_session(user(ADMIN_ID), title, start, end, places)


# Reservations by id

@pytest.mark.asyncio
async def test_cancel_by_id_requires_ownership(booking, user, reservation_count):
    reservation = await booking.reserve_lane_slot(user(1), 1, local(TUESDAY, 7))

    assert await booking.cancel(user(2), reservation.id) is False
    assert await reservation_count(id=reservation.id) == 1

    assert await booking.cancel(user(1), reservation.id) is True
    assert await booking.cancel(user(1), reservation.id) is False
    assert await reservation_count() == 0


@pytest.mark.asyncio
async def test_cancel_unknown_id(booking, user):
    assert await booking.cancel(user(1), 12345) is False


@pytest.mark.asyncio
async def test_list_user_reservations(booking, user, group_session):
    lane = await booking.reserve_lane_slot(user(1), 1, local(TUESDAY, 7))
    session = await booking.reserve_session(user(1), group_session.id)
    await booking.reserve_lane_slot(user(2), 2, local(TUESDAY, 7))

    mine = await booking.list_user_reservations(user(1))

    assert {r.id for r in mine} == {lane.id, session.id}
    assert [r.id for r in mine][0] == session.id


# Foreign keys

@pytest.mark.asyncio
async def test_session_row_cannot_outlive_its_reservations(store, booking, user, group_session, reservation_count):
    """Reservations reference their session, so they have to go first."""
    await booking.reserve_session(user(1), group_session.id)

    with pytest.raises(IntegrityError):
        async with store.transaction():
            await store.delete_session(group_session.id)

    assert await booking.delete_session(user(ADMIN_ID), group_session.id) == 1
    assert await reservation_count(session_id=group_session.id) == 0
    assert await reservation_count() == 0


@pytest.mark.asyncio
async def test_reservation_for_unknown_user_is_not_stored(booking, user, reservation_count):
    with pytest.raises(StorageError):
        await booking.reserve_lane_slot(user(999), 1, local(TUESDAY, 9))

    assert await reservation_count() == 0


@pytest.mark.asyncio
async def test_user_reservations_are_never_lazy_loaded(db_session):
    """Reservations are queried through the store, not through the relationship."""
    member = await db_session.get(User, 1)

    assert member.role.name == "User"
    with pytest.raises(InvalidRequestError):
        member.reservations
