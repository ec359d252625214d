from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from slotbook import db
from slotbook.errors import InvalidInput
from slotbook.models.host import Host
from slotbook.scheduling.service import (
    available_slots,
    bookable_dates,
    load_event_type,
    resolve_time_format,
)
from slotbook.scheduling.timeutil import parse_date


scheduling_bp = Blueprint("scheduling", __name__, url_prefix="/api/availability")

MAX_DATE_RANGE_DAYS = 90


@scheduling_bp.route("", methods=["GET"])
def api_availability():
    event_type = load_event_type(request.args.get("eventTypeId"))
    day_str = request.args.get("date")
    if not day_str:
        raise InvalidInput("date is required")
    day = parse_date(day_str)
    tz_name = request.args.get("timezone") or current_app.config["DEFAULT_GUEST_TIMEZONE"]
    host = db.session.get(Host, event_type.host_id)
    time_format = resolve_time_format(request.args.get("timeFormat"), host)

    slots = available_slots(event_type, day, tz_name, time_format)
    return jsonify({"slots": slots, "timeFormat": time_format})


@scheduling_bp.route("/dates", methods=["GET"])
def api_available_dates():
    event_type = load_event_type(request.args.get("eventTypeId"))
    start = parse_date(request.args.get("start"))
    end = parse_date(request.args.get("end"))
    if end < start:
        raise InvalidInput("end must not be before start")
    end = min(end, start + timedelta(days=MAX_DATE_RANGE_DAYS))
    tz_name = request.args.get("timezone") or current_app.config["DEFAULT_GUEST_TIMEZONE"]
    return jsonify({"dates": bookable_dates(event_type, start, end, tz_name)})
