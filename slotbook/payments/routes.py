import logging

from flask import Blueprint, jsonify, request

from slotbook.booking.service import create_booking_from_checkout, expire_checkout
from slotbook.errors import BookingError, json_body
from slotbook.payments.checkout import start_checkout
from slotbook.payments.stripe_service import construct_webhook_event, is_stripe_configured


log = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/api/stripe")


@payments_bp.route("/create-checkout", methods=["POST"])
def api_create_checkout():
    data = json_body()
    try:
        result = start_checkout(data)
    except BookingError:
        raise
    except Exception:
        log.exception("Failed to create checkout for event type %s", data.get("eventTypeId"))
        return jsonify({"error": "Failed to start payment"}), 500
    return jsonify(result)


@payments_bp.route("/status", methods=["GET"])
def api_stripe_status():
    return jsonify({"configured": is_stripe_configured()})


@payments_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature", "")

    try:
        event = construct_webhook_event(payload, sig_header)
    except BookingError:
        raise
    except Exception as e:
        log.warning("Rejected Stripe webhook: %s", e)
        return jsonify({"error": "Invalid webhook signature"}), 400

    event_type = event["type"]
    session = event["data"]["object"]
    try:
        if event_type == "checkout.session.completed":
            if session.get("payment_status") == "paid":
                booking = create_booking_from_checkout(session)
                log.info(
                    "Checkout %s completed, booking %s",
                    session.get("id"),
                    booking.uid if booking else None,
                )
            else:
                log.info("Checkout %s completed without payment (%s)", session.get("id"), session.get("payment_status"))
        elif event_type == "checkout.session.expired":
            expire_checkout(session.get("id"))
    except Exception:
        # A 5xx makes Stripe redeliver; confirmation is idempotent per session
        log.exception("Failed to process Stripe event %s for checkout %s", event_type, session.get("id"))
        return jsonify({"error": "Webhook processing failed"}), 500

    return jsonify({"received": True}), 200
