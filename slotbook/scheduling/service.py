"""Loads what slot generation needs from the database and Google.

The pure functions in availability, busy, slots and limits know nothing
about storage; this module feeds them and is shared by the availability
endpoint and by booking writes, which re-check a slot the same way it was
offered.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from flask import current_app

from slotbook import db
from slotbook.errors import NotFound, SlotUnavailable
from slotbook.integrations.google_service import get_calendar_service
from slotbook.models.booking import CANCELLED, Booking
from slotbook.models.event_type import EventType
from slotbook.models.host import Host
from slotbook.models.schedule import Schedule
from slotbook.scheduling.availability import (
    Interval,
    resolve_windows,
    within_availability,
)
from slotbook.scheduling.busy import BusyIntervals
from slotbook.scheduling.limits import check_booking_limits, enforce_booking_limits, week_bounds
from slotbook.scheduling.slots import (
    SLOT_STEP_MINUTES,
    earliest_bookable,
    generate_slots,
    within_booking_window,
)
from slotbook.scheduling.timeutil import (
    TIME_FORMAT_12H,
    TIME_FORMATS,
    get_timezone,
    local_date,
    local_day_bounds,
    to_storage,
    utcnow,
)


log = logging.getLogger(__name__)


def load_event_type(event_type_id, for_update: bool = False) -> EventType:
    try:
        event_type_id = int(event_type_id)
    except (TypeError, ValueError):
        raise NotFound("Event type not found")
    query = EventType.query.filter_by(id=event_type_id)
    if for_update:
        # Serializes concurrent writes for one event type where the database supports it
        query = query.with_for_update()
    event_type = query.first()
    if not event_type:
        raise NotFound("Event type not found")
    return event_type


def schedule_for(event_type: EventType) -> Optional[Schedule]:
    return event_type.schedule or Schedule.default_for(event_type.host_id)


def resolve_time_format(requested: Optional[str], host: Optional[Host]) -> str:
    if requested in TIME_FORMATS:
        return requested
    if host is not None and host.time_format in TIME_FORMATS:
        return host.time_format
    return TIME_FORMAT_12H


def fetch_external_busy(host_id: int, start: datetime, end: datetime) -> List[Interval]:
    """Busy blocks from the host's Google calendars; empty when unavailable."""
    try:
        service = get_calendar_service(host_id)
        if service is None:
            return []
        return service.get_busy_times(service.calendar_ids, start, end)
    except Exception as e:
        # Availability stays up when Google is down; the host's calendar is not checked
        log.warning("Google busy lookup failed for host %s, ignoring external calendars: %s", host_id, e)
        return []


def active_bookings(event_type_id: int, start: datetime, end: datetime) -> List[Booking]:
    """Non-cancelled bookings of one event type overlapping [start, end)."""
    return (
        Booking.query.filter(
            Booking.event_type_id == event_type_id,
            Booking.status != CANCELLED,
            Booking.start_utc < to_storage(end),
            Booking.end_utc > to_storage(start),
        )
        .order_by(Booking.start_utc.asc())
        .all()
    )


def build_busy(
    event_type: EventType,
    start: datetime,
    end: datetime,
    ignore_booking: Optional[Booking] = None,
) -> BusyIntervals:
    """Busy time that could collide with a slot inside [start, end)."""
    reach = Interval(start, end).expanded(event_type.buffer_before or 0, event_type.buffer_after or 0)
    bookings = active_bookings(event_type.id, reach.start, reach.end)
    external = fetch_external_busy(event_type.host_id, reach.start, reach.end)
    ignore_id = None
    if ignore_booking is not None:
        ignore_id = ignore_booking.id
        # The booking's own calendar event shows up as busy in Google
        own = Interval(ignore_booking.start_at, ignore_booking.end_at)
        external = [b for b in external if b != own]
    return BusyIntervals(
        bookings,
        external,
        buffer_before=event_type.buffer_before,
        buffer_after=event_type.buffer_after,
        ignore_booking_id=ignore_id,
    )


def bookings_in_week(event_type: EventType, day: date, tz_name: str) -> List[Booking]:
    start, end = week_bounds(day, tz_name)
    return (
        Booking.query.filter(
            Booking.event_type_id == event_type.id,
            Booking.status != CANCELLED,
            Booking.start_utc >= to_storage(start),
            Booking.start_utc < to_storage(end),
        )
        .all()
    )


def guest_day_windows(day: date, schedule: Schedule, guest_timezone: str) -> List[Interval]:
    """Availability windows that fall at least partly on day in the guest's timezone.

    The guest's day can straddle two schedule-local days, and the two zones
    can be up to 26 hours apart, so host days two either side are resolved
    too. Windows are not clipped; callers keep the slots starting on day.
    """
    guest_start, guest_end = local_day_bounds(day, guest_timezone)
    guest_day = Interval(guest_start, guest_end)
    windows = []
    for offset in range(-2, 3):
        candidate = day + timedelta(days=offset)
        for window in resolve_windows(candidate, schedule.availability, schedule.timezone):
            if window.overlaps(guest_day):
                windows.append(window)
    return sorted(windows, key=lambda w: w.start)


def available_slots(
    event_type: EventType,
    day: date,
    guest_timezone: str,
    time_format: str = TIME_FORMAT_12H,
    now: Optional[datetime] = None,
) -> List[str]:
    """Labels of the times a guest in guest_timezone can book on day."""
    get_timezone(guest_timezone)
    now = now or utcnow()
    schedule = schedule_for(event_type)
    if schedule is None or not schedule.availability:
        return []

    windows = guest_day_windows(day, schedule, guest_timezone)
    if not windows:
        return []

    guest_start, guest_end = local_day_bounds(day, guest_timezone)
    busy = build_busy(event_type, min(w.start for w in windows), max(w.end for w in windows))

    tz_name = schedule.timezone
    limit_cache: Dict[date, bool] = {}

    def accept(slot: Interval) -> bool:
        # Slot labels are only meaningful together with the guest's date
        if not guest_start <= slot.start < guest_end:
            return False
        host_day = local_date(slot.start, tz_name)
        if not within_booking_window(host_day, event_type.booking_window_days, tz_name, now):
            return False
        if host_day not in limit_cache:
            existing = bookings_in_week(event_type, host_day, tz_name)
            limit_cache[host_day] = check_booking_limits(host_day, event_type, existing, tz_name).allowed
        return limit_cache[host_day]

    step = current_app.config.get("SLOT_STEP_MINUTES", SLOT_STEP_MINUTES)
    return generate_slots(
        event_type, windows, busy, guest_timezone, time_format, now, step, accept=accept
    )


def bookable_dates(
    event_type: EventType,
    start: date,
    end: date,
    guest_timezone: str,
    now: Optional[datetime] = None,
) -> List[str]:
    """ISO dates in [start, end] on which a guest in guest_timezone sees host availability.

    Matches available_slots: a date counts when some window falls on it in the
    guest's timezone, within the booking window.
    """
    get_timezone(guest_timezone)
    schedule = schedule_for(event_type)
    if schedule is None or not schedule.availability:
        return []
    now = now or utcnow()
    tz_name = schedule.timezone
    dates = []
    day = start
    while day <= end:
        windows = guest_day_windows(day, schedule, guest_timezone)
        if any(
            within_booking_window(local_date(w.start, tz_name), event_type.booking_window_days, tz_name, now)
            for w in windows
        ):
            dates.append(day.isoformat())
        day += timedelta(days=1)
    return dates


def ensure_slot_bookable(
    event_type: EventType,
    slot: Interval,
    *,
    ignore_booking: Optional[Booking] = None,
    check_notice: bool = True,
    now: Optional[datetime] = None,
) -> None:
    """Raise unless slot could be offered right now.

    check_notice=False skips the notice and booking-window rules, for
    payments confirmed after a checkout that began inside them.
    """
    now = now or utcnow()
    schedule = schedule_for(event_type)
    if schedule is None:
        raise SlotUnavailable("The host has no availability configured")
    tz_name = schedule.timezone

    if check_notice:
        if slot.start <= earliest_bookable(event_type.minimum_notice, now):
            raise SlotUnavailable("This time is too soon to book")
        if not within_booking_window(local_date(slot.start, tz_name), event_type.booking_window_days, tz_name, now):
            raise SlotUnavailable("This time is too far in advance to book")

    if not within_availability(slot, schedule.availability, tz_name):
        raise SlotUnavailable("The host is not available at this time")

    busy = build_busy(event_type, slot.start, slot.end, ignore_booking=ignore_booking)
    if busy.conflicts(slot):
        raise SlotUnavailable("This time is no longer available")

    host_day = local_date(slot.start, tz_name)
    existing = bookings_in_week(event_type, host_day, tz_name)
    if ignore_booking is not None:
        existing = [b for b in existing if b.id != ignore_booking.id]
    enforce_booking_limits(host_day, event_type, existing, tz_name)


def lock_event_type(event_type_id) -> EventType:
    """Reload the event type holding a row lock for the rest of the transaction."""
    db.session.expire_all()
    return load_event_type(event_type_id, for_update=True)
