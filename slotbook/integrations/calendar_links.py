"""ICS invites and "add to calendar" links for booking emails."""
from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

from slotbook.scheduling.timeutil import ensure_utc, utcnow


def _ics_date(dt: datetime) -> str:
    return ensure_utc(dt).strftime("%Y%m%dT%H%M%SZ")


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _fold(line: str, limit: int = 75) -> str:
    if len(line) <= limit:
        return line
    parts = [line[:limit]]
    rest = line[limit:]
    while rest:
        parts.append(" " + rest[: limit - 1])
        rest = rest[limit - 1:]
    return "\r\n".join(parts)


def generate_ics(
    uid: str,
    title: str,
    start: datetime,
    end: datetime,
    description: Optional[str] = None,
    location: Optional[str] = None,
    organizer: Optional[tuple] = None,
    attendee: Optional[tuple] = None,
    sequence: int = 0,
) -> str:
    """VCALENDAR text for one event. organizer/attendee are (name, email)."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//slotbook//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_ics_date(utcnow())}",
        f"DTSTART:{_ics_date(start)}",
        f"DTEND:{_ics_date(end)}",
        f"SUMMARY:{_escape(title)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{_escape(description)}")
    if location:
        lines.append(f"LOCATION:{_escape(location)}")
    if organizer:
        lines.append(f"ORGANIZER;CN={_escape(organizer[0])}:mailto:{organizer[1]}")
    if attendee:
        lines.append(f"ATTENDEE;PARTSTAT=ACCEPTED;CN={_escape(attendee[0])}:mailto:{attendee[1]}")
    lines += ["STATUS:CONFIRMED", f"SEQUENCE:{sequence}", "END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(_fold(line) for line in lines)


def google_calendar_url(title, start, end, description=None, location=None) -> str:
    params = {"action": "TEMPLATE", "text": title, "dates": f"{_ics_date(start)}/{_ics_date(end)}"}
    if description:
        params["details"] = description
    if location:
        params["location"] = location
    return "https://calendar.google.com/calendar/render?" + urlencode(params)


def outlook_url(title, start, end, description=None, location=None) -> str:
    params = {
        "rru": "addevent",
        "subject": title,
        "startdt": ensure_utc(start).isoformat(),
        "enddt": ensure_utc(end).isoformat(),
    }
    if description:
        params["body"] = description
    if location:
        params["location"] = location
    return "https://outlook.live.com/calendar/0/action/compose?" + urlencode(params)


def yahoo_calendar_url(title, start, end, description=None, location=None) -> str:
    minutes = int((ensure_utc(end) - ensure_utc(start)).total_seconds() // 60)
    params = {"v": "60", "title": title, "st": _ics_date(start), "dur": f"{minutes // 60:02d}{minutes % 60:02d}"}
    if description:
        params["desc"] = description
    if location:
        params["in_loc"] = location
    return "https://calendar.yahoo.com/?" + urlencode(params)
