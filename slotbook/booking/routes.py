import logging

from flask import Blueprint, current_app, jsonify, request

from slotbook.booking.service import (
    booking_status,
    cancel_booking,
    create_booking,
    get_booking,
    reschedule_booking,
)
from slotbook.errors import BookingError, json_body


log = logging.getLogger(__name__)

booking_bp = Blueprint("booking", __name__, url_prefix="/api/bookings")


@booking_bp.route("", methods=["POST"])
def api_create_booking():
    data = json_body()
    try:
        created = create_booking(
            data.get("eventTypeId"),
            data.get("date"),
            data.get("time"),
            data.get("timezone") or current_app.config["DEFAULT_GUEST_TIMEZONE"],
            data.get("name"),
            data.get("email"),
            data.get("notes"),
            promo_code=data.get("promoCode"),
        )
    except BookingError:
        raise
    except Exception:
        # Guests get a generic message; the log has the details
        log.exception("Failed to create booking for event type %s", data.get("eventTypeId"))
        return jsonify({"error": "Failed to create booking"}), 500
    return jsonify(created.to_dict()), 201


@booking_bp.route("/status", methods=["GET"])
def api_booking_status():
    return jsonify(booking_status(request.args.get("session_id")))


@booking_bp.route("/<uid>", methods=["GET"])
def api_get_booking(uid):
    booking = get_booking(uid)
    data = booking.summary()
    attendee = booking.attendee
    if attendee is not None:
        data["attendeeName"] = attendee.name
        data["timezone"] = attendee.timezone
    if booking.cancellation_reason:
        data["cancellationReason"] = booking.cancellation_reason
    return jsonify(data)


@booking_bp.route("/<uid>/reschedule", methods=["POST"])
def api_reschedule_booking(uid):
    data = json_body()
    try:
        reschedule_booking(
            uid,
            data.get("date"),
            data.get("time"),
            data.get("timezone") or current_app.config["DEFAULT_GUEST_TIMEZONE"],
        )
    except BookingError:
        raise
    except Exception:
        log.exception("Failed to reschedule booking %s", uid)
        return jsonify({"error": "Failed to reschedule booking"}), 500
    return jsonify({"success": True})


@booking_bp.route("/<uid>/cancel", methods=["POST"])
def api_cancel_booking(uid):
    data = json_body()
    try:
        result = cancel_booking(uid, data.get("reason"))
    except BookingError:
        raise
    except Exception:
        log.exception("Failed to cancel booking %s", uid)
        return jsonify({"error": "Failed to cancel booking"}), 500
    return jsonify(result)
