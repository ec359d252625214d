from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List

from slotbook.scheduling.timeutil import (
    day_of_week,
    ensure_utc,
    local_date,
    parse_flexible_time,
    resolve_wall_clock,
)


@dataclass(frozen=True)
class Interval:
    """Half-open [start, end) span between two aware UTC instants."""

    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        # Touching endpoints do not overlap
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def expanded(self, before_minutes: int = 0, after_minutes: int = 0) -> "Interval":
        return Interval(
            self.start - timedelta(minutes=before_minutes),
            self.end + timedelta(minutes=after_minutes),
        )

    @classmethod
    def of(cls, start: datetime, end: datetime) -> "Interval":
        return cls(ensure_utc(start), ensure_utc(end))


def resolve_windows(day: date, rules: Iterable, tz_name: str) -> List[Interval]:
    """UTC windows during which the host is nominally free on day.

    rules are availability rows (day_of_week, start_time, end_time) whose
    times are wall-clock in the schedule timezone tz_name. Overlapping rules
    are not merged; a day without rules yields no windows.
    """
    dow = day_of_week(day)
    windows = []
    for rule in rules:
        if rule.day_of_week != dow:
            continue
        start = resolve_wall_clock(day, parse_flexible_time(rule.start_time), tz_name)
        end = resolve_wall_clock(day, parse_flexible_time(rule.end_time), tz_name)
        windows.append(Interval(start, end))
    return windows


def within_availability(slot: Interval, rules: Iterable, tz_name: str) -> bool:
    """True if slot lies entirely inside one window of its schedule-local day."""
    rules = list(rules)
    day = local_date(slot.start, tz_name)
    # A window resolved for the previous local day can still reach past midnight in UTC terms
    for candidate in (day, day - timedelta(days=1)):
        for window in resolve_windows(candidate, rules, tz_name):
            if window.contains(slot):
                return True
    return False
