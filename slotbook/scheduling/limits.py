from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from slotbook.errors import BookingLimitExceeded
from slotbook.scheduling.busy import CANCELLED
from slotbook.scheduling.timeutil import ensure_utc, local_day_bounds


DAILY_LIMIT_REACHED = "Daily booking limit reached"
WEEKLY_LIMIT_REACHED = "Weekly booking limit reached"


@dataclass
class LimitCheck:
    allowed: bool
    reason: Optional[str] = None


def week_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC bounds of the Sunday-Saturday week containing day, local to tz_name."""
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    start, _ = local_day_bounds(sunday, tz_name)
    _, end = local_day_bounds(sunday + timedelta(days=6), tz_name)
    return start, end


def _count_between(bookings, start: datetime, end: datetime) -> int:
    return sum(1 for b in bookings if start <= ensure_utc(b.start_utc) < end)


def check_booking_limits(day: date, event_type, bookings: Iterable, tz_name: str) -> LimitCheck:
    """Compare existing bookings on day and its week with the event type caps.

    A cap of None or 0 means unlimited.
    """
    active = [b for b in bookings if b.status != CANCELLED]

    per_day = event_type.booking_limits_per_day
    if per_day:
        start, end = local_day_bounds(day, tz_name)
        if _count_between(active, start, end) >= per_day:
            return LimitCheck(False, DAILY_LIMIT_REACHED)

    per_week = event_type.booking_limits_per_week
    if per_week:
        start, end = week_bounds(day, tz_name)
        if _count_between(active, start, end) >= per_week:
            return LimitCheck(False, WEEKLY_LIMIT_REACHED)

    return LimitCheck(True)


def enforce_booking_limits(day: date, event_type, bookings: Iterable, tz_name: str) -> None:
    check = check_booking_limits(day, event_type, bookings, tz_name)
    if not check.allowed:
        raise BookingLimitExceeded(check.reason)
