"""
Tests for the half-hour slot grid and its local-day mapping.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from facility_booking.services.slot_clock import (
    SlotClock,
    is_grid_offset,
    operating_window,
)
from tests.conftest import DST_SUNDAY, SATURDAY, TUESDAY, WARSAW, local


def test_weekday_grid():
    """Weekdays open 06:00-22:00 local: 32 slots, last one starts 21:30."""
    slots = SlotClock(WARSAW).enumerate_slots(TUESDAY)

    assert len(slots) == 32
    assert slots[0] == local(TUESDAY, 6)
    assert slots[-1] == local(TUESDAY, 21, 30)


def test_weekend_grid():
    """Weekends open 07:00-21:00 local: 28 slots."""
    slots = SlotClock(WARSAW).enumerate_slots(SATURDAY)

    assert len(slots) == 28
    assert slots[0] == local(SATURDAY, 7)
    assert slots[-1] == local(SATURDAY, 20, 30)


def test_slots_are_utc_and_consecutive():
    slots = SlotClock(WARSAW).enumerate_slots(TUESDAY)

    assert all(s.tzinfo == timezone.utc for s in slots)
    assert all(b - a == timedelta(minutes=30) for a, b in zip(slots, slots[1:]))


def test_dst_change_keeps_local_opening_time():
    """On the night summer time ends, 07:00 local is one hour later in UTC."""
    clock = SlotClock(WARSAW)

    saturday_first = clock.enumerate_slots(SATURDAY)[0]
    sunday_slots = clock.enumerate_slots(DST_SUNDAY)

    assert saturday_first == datetime(2026, 10, 24, 5, 0, tzinfo=timezone.utc)
    assert sunday_slots[0] == datetime(2026, 10, 25, 6, 0, tzinfo=timezone.utc)
    assert len(sunday_slots) == 28
    assert sunday_slots[-1] == datetime(2026, 10, 25, 19, 30, tzinfo=timezone.utc)


def test_window_bounds():
    opens, closes = SlotClock(WARSAW).window_bounds(TUESDAY)

    assert opens == local(TUESDAY, 6)
    assert closes == local(TUESDAY, 22)


def test_operating_window_by_weekday():
    assert operating_window(TUESDAY) == (timedelta(hours=6), timedelta(hours=22))
    assert operating_window(SATURDAY) == (timedelta(hours=7), timedelta(hours=21))
    assert operating_window(DST_SUNDAY) == (timedelta(hours=7), timedelta(hours=21))


def test_slots_between():
    slots = SlotClock(WARSAW).slots_between(TUESDAY, timedelta(hours=9), timedelta(hours=10, minutes=30))

    assert slots == [local(TUESDAY, 9), local(TUESDAY, 9, 30), local(TUESDAY, 10)]


def test_is_grid_offset():
    assert is_grid_offset(timedelta(hours=9, minutes=30))
    assert not is_grid_offset(timedelta(hours=9, minutes=15))


def test_align_to_grid_rounds_down():
    align_to_grid = SlotClock(WARSAW).align_to_grid

    assert align_to_grid(datetime(2026, 10, 20, 10, 47, 12, tzinfo=timezone.utc)) == datetime(
        2026, 10, 20, 10, 30, tzinfo=timezone.utc
    )
    assert align_to_grid(datetime(2026, 10, 20, 10, 29, 59, tzinfo=timezone.utc)) == datetime(
        2026, 10, 20, 10, 0, tzinfo=timezone.utc
    )


def test_align_to_grid_converts_to_utc():
    aligned = SlotClock(WARSAW).align_to_grid(datetime(2026, 10, 20, 18, 10, tzinfo=WARSAW))

    assert aligned == datetime(2026, 10, 20, 16, 0, tzinfo=timezone.utc)
    assert aligned.tzinfo == timezone.utc


def test_align_to_grid_treats_naive_as_utc():
    aligned = SlotClock(WARSAW).align_to_grid(datetime(2026, 10, 20, 8, 5))

    assert aligned == datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc)


def test_align_to_grid_follows_local_grid():
    """Nepal is UTC+05:45, so its half-hour grid sits at :15 and :45 in UTC."""
    clock = SlotClock(ZoneInfo("Asia/Kathmandu"))

    aligned = clock.align_to_grid(datetime(2026, 10, 20, 10, 10, tzinfo=timezone.utc))

    assert aligned == datetime(2026, 10, 20, 9, 45, tzinfo=timezone.utc)
    assert aligned.astimezone(clock.tz).minute == 30


def test_align_to_grid_across_dst_change():
    """01:40 UTC on the changeover night is 02:40 CET, after the clocks went back."""
    aligned = SlotClock(WARSAW).align_to_grid(datetime(2026, 10, 25, 1, 40, tzinfo=timezone.utc))

    assert aligned == datetime(2026, 10, 25, 1, 30, tzinfo=timezone.utc)


def test_is_slot_instant():
    clock = SlotClock(WARSAW)

    assert clock.is_slot_instant(local(TUESDAY, 6))
    assert clock.is_slot_instant(local(TUESDAY, 21, 30))
    # Closing time is not a slot start
    assert not clock.is_slot_instant(local(TUESDAY, 22))
    assert not clock.is_slot_instant(local(TUESDAY, 5, 30))
    assert not clock.is_slot_instant(local(TUESDAY, 9, 15))
    assert not clock.is_slot_instant(local(SATURDAY, 6, 30))
    assert not clock.is_slot_instant(datetime(2026, 10, 20, 9, 0))


def test_local_date():
    clock = SlotClock(WARSAW)

    # 23:30 UTC on Monday is already Tuesday in Warsaw
    assert clock.local_date(datetime(2026, 10, 19, 23, 30, tzinfo=timezone.utc)) == TUESDAY
