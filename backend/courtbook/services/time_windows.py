"""Half-open time windows and weekday derivation for booking dates.

Booking dates are civil calendar dates at the facility. They are never shifted
across timezones: the weekday of ``2024-06-01`` is Saturday no matter where the
server runs. ``facility_today`` is the only place the facility timezone is
consulted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from zoneinfo import ZoneInfo

from courtbook.core.config import settings
from courtbook.core.errors import BookingValidationError


class Weekday(str, Enum):
    """Day of week keyed the way blocked windows are stored."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


_WEEKDAYS = tuple(Weekday)


def weekday_for(day: date) -> Weekday:
    """Return the weekday of a civil date."""
    return _WEEKDAYS[day.weekday()]


def facility_today(*, now: datetime | None = None) -> date:
    """Return today's date in the facility timezone."""
    zone = ZoneInfo(settings.facility_timezone)
    current = now or datetime.now(zone)
    if current.tzinfo is None:
        current = current.replace(tzinfo=zone)
    return current.astimezone(zone).date()


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open interval ``[start, end)`` within a single day."""

    start: time
    end: time

    def __post_init__(self) -> None:
        # Times are facility wall-clock times; an offset would be dropped on storage.
        if self.start.tzinfo is not None or self.end.tzinfo is not None:
            raise BookingValidationError("times must not carry a timezone offset")
        if self.start >= self.end:
            raise BookingValidationError("start time must be before end time")

    def overlaps(self, other: TimeWindow) -> bool:
        """Windows touching at a boundary do not overlap."""
        return self.start < other.end and other.start < self.end

    def overlaps_range(self, start: time, end: time) -> bool:
        return self.start < end and start < self.end
