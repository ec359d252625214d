import logging

from flask import current_app

from slotbook import db
from slotbook.booking.service import clean_guest, resolve_slot
from slotbook.errors import InvalidInput, PaymentNotConfigured
from slotbook.models.host import Host
from slotbook.models.payment import PAYMENT_PENDING, Payment
from slotbook.payments.stripe_service import create_checkout_session, is_stripe_configured
from slotbook.scheduling.service import ensure_slot_bookable, load_event_type


log = logging.getLogger(__name__)


def start_checkout(data: dict) -> dict:
    """Open a Stripe checkout for a paid slot, or wave it through on a promo code.

    Returns {"freeBooking": True} for a matching promo code, otherwise
    {"sessionId", "url"} for the redirect. No booking exists yet either way.
    """
    event_type = load_event_type(data.get("eventTypeId"))
    if event_type.promo_matches(data.get("promoCode")):
        log.info("Promo code accepted for event type %s", event_type.id)
        return {"freeBooking": True}
    if not event_type.requires_payment:
        raise InvalidInput("This event type does not require payment")
    if not is_stripe_configured():
        raise PaymentNotConfigured("Payments are not available right now")

    name, email = clean_guest(data.get("name"), data.get("email"))
    tz_name = data.get("timezone") or current_app.config["DEFAULT_GUEST_TIMEZONE"]
    date_str = (data.get("date") or "").strip()
    time_str = (data.get("time") or "").strip()
    slot = resolve_slot(event_type, date_str, time_str, tz_name)
    ensure_slot_bookable(event_type, slot)

    host = db.session.get(Host, event_type.host_id)
    base = current_app.config["APP_URL"].rstrip("/")
    booking_start_time = f"{date_str}T{time_str}"
    notes = (data.get("notes") or "").strip() or None

    result = create_checkout_session(
        event_type_id=event_type.id,
        event_title=event_type.title,
        price_cents=event_type.price_cents,
        host_name=host.display_name if host else "",
        guest_email=email,
        guest_name=name,
        guest_timezone=tz_name,
        booking_start_time=booking_start_time,
        booking_notes=notes,
        success_url=f"{base}/booking/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/book/{event_type.slug}?cancelled=true",
    )

    payment = Payment(
        stripe_checkout_session_id=result.session_id,
        amount_cents=event_type.price_cents,
        currency=current_app.config.get("STRIPE_CURRENCY", "usd"),
        status=PAYMENT_PENDING,
        event_type_id=event_type.id,
        guest_email=email,
        guest_name=name,
        guest_timezone=tz_name,
        booking_start_time=booking_start_time,
        booking_notes=notes,
    )
    db.session.add(payment)
    db.session.commit()
    log.info("Checkout %s opened for event type %s", result.session_id, event_type.id)
    return {"sessionId": result.session_id, "url": result.url}
