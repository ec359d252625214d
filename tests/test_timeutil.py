from datetime import date, datetime, time, timezone

import pytest

from slotbook.errors import InvalidInput, InvalidTimeFormat
from slotbook.scheduling.timeutil import (
    TIME_FORMAT_12H,
    TIME_FORMAT_24H,
    day_of_week,
    format_instant,
    format_long,
    local_date,
    local_day_bounds,
    parse_date,
    parse_flexible_time,
    resolve_wall_clock,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("14:30", time(14, 30)),
        ("09:00", time(9, 0)),
        ("9:00", time(9, 0)),
        ("2:30 PM", time(14, 30)),
        ("2:30pm", time(14, 30)),
        ("12:00 AM", time(0, 0)),
        ("12:15 PM", time(12, 15)),
        ("11:45 p.m.", time(23, 45)),
    ],
)
def test_parse_flexible_time_accepts_both_formats(text, expected):
    assert parse_flexible_time(text) == expected


@pytest.mark.parametrize("text", ["", "25:00", "13:00 PM", "9", "noon", "9:60"])
def test_parse_flexible_time_rejects_garbage(text):
    with pytest.raises(InvalidTimeFormat):
        parse_flexible_time(text)


def test_invalid_time_format_is_invalid_input():
    with pytest.raises(InvalidInput):
        parse_flexible_time("later")


def test_parse_date():
    assert parse_date("2024-03-04") == date(2024, 3, 4)
    with pytest.raises(InvalidInput):
        parse_date("03/04/2024")


def test_resolve_wall_clock_uses_zone_offset():
    # EST in early March, GMT in London
    assert resolve_wall_clock(date(2024, 3, 4), time(9, 0), "America/New_York") == utc(2024, 3, 4, 14, 0)
    assert resolve_wall_clock(date(2024, 3, 4), time(9, 0), "Europe/London") == utc(2024, 3, 4, 9, 0)


def test_resolve_wall_clock_skipped_time_moves_forward():
    # 02:30 does not exist on 2024-03-10 in New York; it becomes 03:30 EDT
    instant = resolve_wall_clock(date(2024, 3, 10), time(2, 30), "America/New_York")
    assert instant == utc(2024, 3, 10, 7, 30)
    assert format_instant(instant, "America/New_York", TIME_FORMAT_24H) == "03:30"


def test_resolve_wall_clock_repeated_time_takes_first_occurrence():
    # 01:30 happens twice on 2024-11-03 in New York; the EDT one comes first
    instant = resolve_wall_clock(date(2024, 11, 3), time(1, 30), "America/New_York")
    assert instant == utc(2024, 11, 3, 5, 30)


def test_unknown_timezone():
    with pytest.raises(InvalidInput):
        resolve_wall_clock(date(2024, 3, 4), time(9, 0), "Mars/Olympus_Mons")


@pytest.mark.parametrize("tz_name", ["America/New_York", "Europe/London", "Asia/Kolkata", "Australia/Sydney", "UTC"])
@pytest.mark.parametrize("label", ["12:00 AM", "9:15 AM", "12:30 PM", "11:45 PM"])
def test_round_trip_12h(tz_name, label):
    day = date(2024, 6, 12)
    instant = resolve_wall_clock(day, parse_flexible_time(label), tz_name)
    assert format_instant(instant, tz_name, TIME_FORMAT_12H) == label


def test_round_trip_24h():
    instant = resolve_wall_clock(date(2024, 1, 15), parse_flexible_time("17:05"), "Asia/Tokyo")
    assert format_instant(instant, "Asia/Tokyo", TIME_FORMAT_24H) == "17:05"


def test_format_instant_12h_has_no_leading_zero():
    assert format_instant(utc(2024, 3, 4, 14, 0), "America/New_York") == "9:00 AM"
    assert format_instant(utc(2024, 3, 4, 14, 0), "America/New_York", TIME_FORMAT_24H) == "09:00"


def test_format_long():
    assert format_long(utc(2024, 3, 4, 14, 0), "America/New_York") == "Monday, March 4, 2024 at 9:00 AM"


def test_local_day_bounds_spans_local_midnights():
    start, end = local_day_bounds(date(2024, 3, 4), "America/New_York")
    assert start == utc(2024, 3, 4, 5, 0)
    assert end == utc(2024, 3, 5, 5, 0)


def test_local_day_bounds_on_dst_day_is_23_hours():
    start, end = local_day_bounds(date(2024, 3, 10), "America/New_York")
    assert (end - start).total_seconds() == 23 * 3600


def test_local_date_crosses_midnight():
    assert local_date(utc(2024, 3, 5, 2, 0), "America/New_York") == date(2024, 3, 4)


def test_day_of_week_starts_on_sunday():
    assert day_of_week(date(2024, 3, 3)) == 0
    assert day_of_week(date(2024, 3, 4)) == 1
    assert day_of_week(date(2024, 3, 9)) == 6
