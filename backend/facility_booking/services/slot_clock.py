"""
Half-hour slot grid.

All instants handled by the booking core are timezone-aware UTC datetimes.
The facility's local calendar is consulted in exactly one place: turning a
local day plus an offset from local midnight into a UTC instant. Each slot
boundary is computed that way on its own, never by adding 30 minutes to the
previous UTC instant, so a DST change inside a day cannot shift the grid.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from facility_booking.core.config import get_settings

SLOT_LENGTH = timedelta(minutes=30)

WEEKDAY_WINDOW = (timedelta(hours=6), timedelta(hours=22))
WEEKEND_WINDOW = (timedelta(hours=7), timedelta(hours=21))


def operating_window(day: date) -> tuple[timedelta, timedelta]:
    """(open, close) as offsets from local midnight; Saturday and Sunday open later."""
    if day.weekday() >= 5:
        return WEEKEND_WINDOW
    return WEEKDAY_WINDOW


def is_grid_offset(offset: timedelta) -> bool:
    return offset % SLOT_LENGTH == timedelta(0)


class SlotClock:
    """Maps a facility's local days onto UTC slot instants."""

    def __init__(self, tz: Optional[ZoneInfo] = None):
        self.tz = tz or ZoneInfo(get_settings().FACILITY_TIMEZONE)

    def instant(self, day: date, offset: timedelta) -> datetime:
        """UTC instant of ``offset`` after local midnight of ``day`` (wall-clock offset)."""
        wall = datetime.combine(day, time.min) + offset
        return wall.replace(tzinfo=self.tz).astimezone(timezone.utc)

    def window_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC instants of the day's opening and closing time."""
        open_offset, close_offset = operating_window(day)
        return self.instant(day, open_offset), self.instant(day, close_offset)

    def enumerate_slots(self, day: date) -> list[datetime]:
        open_offset, close_offset = operating_window(day)
        return self.slots_between(day, open_offset, close_offset)

    def slots_between(self, day: date, start: timedelta, end: timedelta) -> list[datetime]:
        slots = []
        offset = start
        while offset < end:
            slots.append(self.instant(day, offset))
            offset += SLOT_LENGTH
        return slots

    def align_to_grid(self, instant: datetime) -> datetime:
        """
        Round down to minute 0 or 30 of the local hour, returned in UTC.
        Naive instants are taken to be UTC. Rounding on the local wall clock
        keeps zones with quarter-hour offsets (Asia/Kathmandu) on the slot grid.
        """
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        local = instant.astimezone(self.tz)
        minute = 0 if local.minute < 30 else 30
        return local.replace(minute=minute, second=0, microsecond=0).astimezone(timezone.utc)

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self.tz).date()

    def is_slot_instant(self, instant: datetime) -> bool:
        """True when ``instant`` is a grid cell start within its local day's window."""
        if instant.tzinfo is None:
            return False
        local = instant.astimezone(self.tz)
        offset = timedelta(hours=local.hour, minutes=local.minute, seconds=local.second,
                           microseconds=local.microsecond)
        if not is_grid_offset(offset):
            return False
        open_offset, close_offset = operating_window(local.date())
        if not open_offset <= offset < close_offset:
            return False
        return self.instant(local.date(), offset) == instant.astimezone(timezone.utc)
