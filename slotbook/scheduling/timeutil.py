"""Timezone arithmetic shared by slot generation and booking writes.

Three clocks meet here: the host's schedule timezone (availability rules are
wall-clock times in it), the guest's display timezone (slots are shown and
submitted in it) and UTC (everything stored). All conversions go through
pytz so DST gaps and overlaps are resolved the same way everywhere.
"""
import re
from datetime import date, datetime, time, timedelta, timezone

import pytz

from slotbook.errors import InvalidInput, InvalidTimeFormat


TIME_FORMAT_12H = "12h"
TIME_FORMAT_24H = "24h"
TIME_FORMATS = (TIME_FORMAT_12H, TIME_FORMAT_24H)

_TIME_24H = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_TIME_12H = re.compile(r"^(1[0-2]|0?[1-9]):([0-5]\d)\s*([AaPp])\.?[Mm]\.?$")


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_timezone(tz_name: str):
    try:
        return pytz.timezone(tz_name)
    except (pytz.UnknownTimeZoneError, AttributeError):
        raise InvalidInput(f"Unknown timezone: {tz_name}")


def ensure_utc(dt: datetime) -> datetime:
    # Naive values come from the database and are UTC by convention
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_storage(dt: datetime) -> datetime:
    """Aware instant -> naive UTC for DateTime columns."""
    return ensure_utc(dt).replace(tzinfo=None)


def parse_date(date_str: str) -> date:
    try:
        return datetime.strptime((date_str or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise InvalidInput("Invalid date. Use YYYY-MM-DD")


def parse_flexible_time(text: str) -> time:
    """Parse "14:30" or "2:30 PM" into a time of day.

    Raises InvalidTimeFormat for anything else.
    """
    value = (text or "").strip()
    m = _TIME_24H.match(value)
    if m:
        return time(int(m.group(1)), int(m.group(2)))
    m = _TIME_12H.match(value)
    if m:
        hour = int(m.group(1)) % 12
        if m.group(3).lower() == "p":
            hour += 12
        return time(hour, int(m.group(2)))
    raise InvalidTimeFormat(f"Invalid time: {text!r}")


def resolve_wall_clock(day: date, time_of_day: time, tz_name: str) -> datetime:
    """Interpret a naive date and time as wall-clock time in tz_name.

    Returns the aware UTC instant. Times skipped by a DST jump resolve
    forward (02:30 on a spring-forward night in New York is 03:30 EDT);
    times that occur twice resolve to the earlier occurrence, which is the
    one slot labels are deduplicated to.
    """
    tz = get_timezone(tz_name)
    naive = datetime.combine(day, time_of_day.replace(tzinfo=None))
    try:
        local = tz.localize(naive, is_dst=None)
    except pytz.AmbiguousTimeError:
        local = tz.localize(naive, is_dst=True)
    except pytz.NonExistentTimeError:
        local = tz.normalize(tz.localize(naive, is_dst=False))
    return local.astimezone(timezone.utc)


def format_instant(instant: datetime, tz_name: str, style: str = TIME_FORMAT_12H) -> str:
    local = ensure_utc(instant).astimezone(get_timezone(tz_name))
    if style == TIME_FORMAT_24H:
        return local.strftime("%H:%M")
    return local.strftime("%I:%M %p").lstrip("0")


def format_long(instant: datetime, tz_name: str) -> str:
    """"Monday, March 4, 2024 at 9:00 AM" in tz_name, for emails."""
    local = ensure_utc(instant).astimezone(get_timezone(tz_name))
    return (
        f"{local.strftime('%A, %B')} {local.day}, {local.year} at "
        f"{local.strftime('%I:%M %p').lstrip('0')}"
    )


def local_day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC instants of local midnight on day and on the following day."""
    start = resolve_wall_clock(day, time(0, 0), tz_name)
    end = resolve_wall_clock(day + timedelta(days=1), time(0, 0), tz_name)
    return start, end


def local_date(instant: datetime, tz_name: str) -> date:
    return ensure_utc(instant).astimezone(get_timezone(tz_name)).date()


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday, the convention availability rules use."""
    return (day.weekday() + 1) % 7
