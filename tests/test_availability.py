from datetime import date, datetime, timezone
from types import SimpleNamespace

from slotbook.scheduling.availability import (
    Interval,
    resolve_windows,
    within_availability,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def rule(dow, start, end):
    return SimpleNamespace(day_of_week=dow, start_time=start, end_time=end)


WEEKDAYS = [rule(dow, "09:00", "17:00") for dow in range(1, 6)]


def test_resolve_windows_converts_schedule_time_to_utc():
    windows = resolve_windows(date(2024, 3, 4), WEEKDAYS, "America/New_York")
    assert windows == [Interval(utc(2024, 3, 4, 14, 0), utc(2024, 3, 4, 22, 0))]


def test_resolve_windows_day_without_rules():
    assert resolve_windows(date(2024, 3, 3), WEEKDAYS, "America/New_York") == []


def test_resolve_windows_keeps_split_shifts_separate():
    rules = [rule(1, "09:00", "12:00"), rule(1, "13:00", "17:00"), rule(2, "09:00", "17:00")]
    windows = resolve_windows(date(2024, 3, 4), rules, "UTC")
    assert windows == [
        Interval(utc(2024, 3, 4, 9, 0), utc(2024, 3, 4, 12, 0)),
        Interval(utc(2024, 3, 4, 13, 0), utc(2024, 3, 4, 17, 0)),
    ]


def test_resolve_windows_accepts_12h_rule_times():
    windows = resolve_windows(date(2024, 3, 4), [rule(1, "9:00 AM", "5:00 PM")], "UTC")
    assert windows == [Interval(utc(2024, 3, 4, 9, 0), utc(2024, 3, 4, 17, 0))]


def test_within_availability():
    inside = Interval(utc(2024, 3, 4, 16, 30), utc(2024, 3, 4, 17, 0))
    straddling = Interval(utc(2024, 3, 4, 21, 45), utc(2024, 3, 4, 22, 15))
    weekend = Interval(utc(2024, 3, 3, 16, 0), utc(2024, 3, 3, 16, 30))
    assert within_availability(inside, WEEKDAYS, "America/New_York")
    assert not within_availability(straddling, WEEKDAYS, "America/New_York")
    assert not within_availability(weekend, WEEKDAYS, "America/New_York")


def test_interval_overlap_is_half_open():
    a = Interval(utc(2024, 3, 4, 10, 0), utc(2024, 3, 4, 10, 30))
    b = Interval(utc(2024, 3, 4, 10, 30), utc(2024, 3, 4, 11, 0))
    assert not a.overlaps(b)
    assert not b.overlaps(a)
    assert a.overlaps(Interval(utc(2024, 3, 4, 10, 29), utc(2024, 3, 4, 10, 45)))
