import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import httplib2
from flask import current_app
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from slotbook import db
from slotbook.models.credential import Credential
from slotbook.scheduling.availability import Interval


log = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
]


@dataclass
class CalendarEvent:
    external_id: str
    meeting_url: Optional[str] = None
    html_link: Optional[str] = None


def creds_from_json(creds_json: Optional[str]) -> Optional[Credentials]:
    if not creds_json:
        return None
    data = json.loads(creds_json)
    return Credentials.from_authorized_user_info(data, SCOPES)


def to_rfc3339(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _parse_iso(s: str) -> datetime:
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


class GoogleCalendarService:
    """Calendar provider backed by one host's Google credential."""

    def __init__(
        self,
        creds: Credentials,
        credential_id: Optional[int] = None,
        timeout: int = 10,
        calendar_ids: Optional[List[str]] = None,
        destination_calendar_id: str = "primary",
    ):
        self.credential_id = credential_id
        self.calendar_ids = calendar_ids or ["primary"]
        self.destination_calendar_id = destination_calendar_id or "primary"
        http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
        self.service = build("calendar", "v3", http=http, cache_discovery=False)

    def get_busy_times(self, calendar_ids: List[str], start: datetime, end: datetime) -> List[Interval]:
        if not calendar_ids:
            return []
        body = {
            "timeMin": to_rfc3339(start),
            "timeMax": to_rfc3339(end),
            "items": [{"id": cid} for cid in calendar_ids],
        }
        resp = self.service.freebusy().query(body=body).execute()
        busy = []
        for calendar in (resp.get("calendars") or {}).values():
            for b in calendar.get("busy", []) or []:
                if b.get("start") and b.get("end"):
                    busy.append(Interval.of(_parse_iso(b["start"]), _parse_iso(b["end"])))
        return busy

    def create_event(
        self,
        calendar_id: str,
        summary: str,
        start: datetime,
        end: datetime,
        attendees: List[dict],
        description: str = "",
        create_meet: bool = False,
        request_id: Optional[str] = None,
    ) -> CalendarEvent:
        event = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": to_rfc3339(start), "timeZone": "UTC"},
            "end": {"dateTime": to_rfc3339(end), "timeZone": "UTC"},
            "attendees": attendees,
        }
        if create_meet:
            event["conferenceData"] = {
                "createRequest": {
                    "requestId": request_id or f"req-{int(datetime.now(timezone.utc).timestamp())}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }
        created = self.service.events().insert(
            calendarId=calendar_id,
            body=event,
            conferenceDataVersion=1 if create_meet else 0,
            sendUpdates="all",
        ).execute()
        meet_link = None
        conf = created.get("conferenceData", {})
        for ep in conf.get("entryPoints", []) or []:
            if ep.get("entryPointType") == "video":
                meet_link = ep.get("uri")
                break
        return CalendarEvent(created.get("id"), meet_link, created.get("htmlLink"))

    def update_event(
        self,
        calendar_id: str,
        external_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        summary: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        body = {}
        if summary:
            body["summary"] = summary
        if description:
            body["description"] = description
        if start:
            body["start"] = {"dateTime": to_rfc3339(start), "timeZone": "UTC"}
        if end:
            body["end"] = {"dateTime": to_rfc3339(end), "timeZone": "UTC"}
        self.service.events().patch(
            calendarId=calendar_id, eventId=external_id, body=body, sendUpdates="all"
        ).execute()

    def delete_event(self, calendar_id: str, external_id: str) -> None:
        try:
            self.service.events().delete(
                calendarId=calendar_id, eventId=external_id, sendUpdates="all"
            ).execute()
        except HttpError as e:
            # Already gone on Google's side
            if e.resp is not None and e.resp.status in (404, 410):
                log.info("Calendar event %s already deleted", external_id)
                return
            raise


def _persist_refreshed_token(credential: Credential, creds: Credentials) -> None:
    # Concurrent refreshes race here; last writer wins
    try:
        credential.key_json = creds.to_json()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        log.warning("Could not persist refreshed Google token for credential %s: %s", credential.id, e)


def get_calendar_service(host_id: int) -> Optional[GoogleCalendarService]:
    """Calendar service for host_id, or None if no usable credential is stored."""
    credential = Credential.for_host(host_id)
    if not credential:
        return None
    try:
        creds = creds_from_json(credential.key_json)
    except (ValueError, KeyError) as e:
        log.warning("Stored Google credential %s is unreadable: %s", credential.id, e)
        return None
    if not creds:
        return None
    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as e:
            log.warning("Google token refresh failed for credential %s: %s", credential.id, e)
            return None
        _persist_refreshed_token(credential, creds)
    timeout = current_app.config.get("UPSTREAM_TIMEOUT_SECONDS", 10)
    return GoogleCalendarService(
        creds,
        credential.id,
        timeout=timeout,
        calendar_ids=credential.calendar_ids,
        destination_calendar_id=credential.destination_calendar_id,
    )
