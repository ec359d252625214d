"""Bookable start times.

Candidates are proposed every SLOT_STEP_MINUTES from the start of each
availability window, whatever the event length, so a 60 minute meeting can
start at :15. A candidate survives if it starts strictly after the minimum
notice horizon, ends within its window, and its buffered span misses every
busy interval. Survivors are shown in the guest's timezone and format;
two instants that render the same label collapse to the earlier one.
"""
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from slotbook.scheduling.availability import Interval
from slotbook.scheduling.busy import BusyIntervals
from slotbook.scheduling.timeutil import (
    TIME_FORMAT_12H,
    format_instant,
    local_date,
    utcnow,
)


SLOT_STEP_MINUTES = 15


def earliest_bookable(minimum_notice: int, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + timedelta(minutes=minimum_notice or 0)


def within_booking_window(
    day: date, booking_window_days: Optional[int], tz_name: str, now: Optional[datetime] = None
) -> bool:
    """False when day lies more than booking_window_days after today in tz_name."""
    if not booking_window_days:
        return True
    today = local_date(now or utcnow(), tz_name)
    return (day - today).days <= booking_window_days


def candidate_slots(
    event_type,
    windows: Sequence[Interval],
    busy: BusyIntervals,
    now: Optional[datetime] = None,
    step_minutes: int = SLOT_STEP_MINUTES,
) -> List[Interval]:
    """Every free [start, start + length) slot across windows, in scan order."""
    duration = timedelta(minutes=event_type.length)
    step = timedelta(minutes=step_minutes)
    notice_horizon = earliest_bookable(event_type.minimum_notice, now)

    found = []
    for window in windows:
        cursor = window.start
        while cursor + duration <= window.end:
            slot = Interval(cursor, cursor + duration)
            if cursor > notice_horizon and not busy.conflicts(slot):
                found.append(slot)
            cursor += step
    return found


def label_slots(
    slots: Sequence[Interval], guest_timezone: str, time_format: str = TIME_FORMAT_12H
) -> List[Tuple[datetime, str]]:
    """(instant, label) pairs sorted by instant, unique by label, earliest kept."""
    pairs = sorted(
        ((s.start, format_instant(s.start, guest_timezone, time_format)) for s in slots),
        key=lambda p: p[0],
    )
    seen = set()
    result = []
    for instant, label in pairs:
        if label in seen:
            continue
        seen.add(label)
        result.append((instant, label))
    return result


def generate_slots(
    event_type,
    windows: Sequence[Interval],
    busy: BusyIntervals,
    guest_timezone: str,
    time_format: str = TIME_FORMAT_12H,
    now: Optional[datetime] = None,
    step_minutes: int = SLOT_STEP_MINUTES,
    accept: Optional[Callable[[Interval], bool]] = None,
) -> List[str]:
    """Display labels of the bookable start times, in chronological order.

    accept, when given, is a further per-slot filter applied before labels
    are deduplicated.
    """
    slots = candidate_slots(event_type, windows, busy, now, step_minutes)
    if accept is not None:
        slots = [s for s in slots if accept(s)]
    return [label for _, label in label_slots(slots, guest_timezone, time_format)]
