import json
import logging

import requests
from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for
from flask_login import current_user, login_required
from google_auth_oauthlib.flow import Flow

from slotbook import db
from slotbook.errors import ConfigurationError, InvalidInput, json_body
from slotbook.integrations.google_service import SCOPES
from slotbook.models.credential import GOOGLE_CALENDAR, Credential


log = logging.getLogger(__name__)

google_bp = Blueprint("google", __name__, url_prefix="/google")


def _flow(state=None) -> Flow:
    client_id = current_app.config.get("GOOGLE_CLIENT_ID")
    client_secret = current_app.config.get("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise ConfigurationError("Google OAuth is not configured. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.")
    return Flow.from_client_config(
        {
            "web": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        },
        scopes=SCOPES,
        state=state,
        redirect_uri=current_app.config["APP_URL"].rstrip("/") + url_for("google.callback"),
    )


@google_bp.route("/connect")
@login_required
def connect():
    auth_url, state = _flow().authorization_url(
        access_type="offline", include_granted_scopes="true", prompt="consent"
    )
    session["google_oauth_state"] = state
    return redirect(auth_url)


@google_bp.route("/callback")
@login_required
def callback():
    state = session.pop("google_oauth_state", None)
    if not state or request.args.get("state") != state:
        raise InvalidInput("Invalid OAuth state")

    flow = _flow(state=state)
    flow.fetch_token(authorization_response=request.url)

    credential = Credential.for_host(current_user.id)
    if credential is None:
        credential = Credential(host_id=current_user.id, type=GOOGLE_CALENDAR)
        db.session.add(credential)
    credential.key_json = flow.credentials.to_json()
    db.session.commit()
    log.info("Google Calendar connected for host %s", current_user.id)
    return redirect(current_app.config["APP_URL"].rstrip("/") + "/settings?google=connected")


@google_bp.route("/calendars", methods=["POST"])
@login_required
def select_calendars():
    credential = Credential.for_host(current_user.id)
    if credential is None:
        raise InvalidInput("Google Calendar is not connected")
    data = json_body()
    calendar_ids = [c for c in (data.get("calendarIds") or []) if isinstance(c, str) and c]
    credential.selected_calendars = json.dumps(calendar_ids) if calendar_ids else None
    if data.get("destinationCalendarId"):
        credential.destination_calendar_id = data["destinationCalendarId"]
    db.session.commit()
    return jsonify({
        "calendarIds": credential.calendar_ids,
        "destinationCalendarId": credential.destination_calendar_id,
    })


@google_bp.route("/disconnect", methods=["POST"])
@login_required
def disconnect():
    credential = Credential.for_host(current_user.id)
    if credential is None:
        raise InvalidInput("Google Calendar is not connected")

    # Token revocation is best-effort; the stored credential goes either way
    key = credential.key
    token = key.get("token") or key.get("refresh_token")
    if token:
        try:
            requests.post(
                "https://oauth2.googleapis.com/revoke",
                params={"token": token},
                headers={"content-type": "application/x-www-form-urlencoded"},
                timeout=current_app.config.get("UPSTREAM_TIMEOUT_SECONDS", 10),
            )
        except requests.RequestException as e:
            log.warning("Google token revocation failed for host %s: %s", current_user.id, e)

    db.session.delete(credential)
    db.session.commit()
    return jsonify({"success": True})
