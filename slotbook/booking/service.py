"""Booking lifecycle: create, confirm after payment, reschedule and cancel.

Row writes and status changes are the fatal part of every operation and
raise. Calendar sync, refunds and email come after the commit and go through
side_effects.fire, so the guest sees success even when Google, Stripe or
SMTP is having a bad day.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from slotbook import db
from slotbook.booking.side_effects import fire
from slotbook.errors import (
    AlreadyCancelled,
    BookingLimitExceeded,
    InvalidInput,
    InvalidState,
    NotFound,
    PaymentRequired,
    SlotUnavailable,
)
from slotbook.integrations.google_service import get_calendar_service
from slotbook.models.booking import (
    ACCEPTED,
    CANCELLED,
    REJECTED,
    REMINDER_PENDING,
    Attendee,
    Booking,
    BookingReference,
)
from slotbook.models.credential import GOOGLE_CALENDAR
from slotbook.models.email_template import (
    CANCELLATION,
    CONFIRMATION,
    HOST_NOTIFICATION,
    RESCHEDULED,
)
from slotbook.models.event_type import LOCATION_GOOGLE_MEET, EventType
from slotbook.models.host import Host
from slotbook.models.payment import (
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_REFUNDED,
    Payment,
)
from slotbook.notifications.email import NotificationPayload, send_for_host
from slotbook.payments.stripe_service import is_eligible_for_refund, process_refund
from slotbook.scheduling.availability import Interval
from slotbook.scheduling.service import ensure_slot_bookable, load_event_type, lock_event_type
from slotbook.scheduling.timeutil import (
    get_timezone,
    parse_date,
    parse_flexible_time,
    resolve_wall_clock,
    to_storage,
)


log = logging.getLogger(__name__)


@dataclass
class CreatedBooking:
    uid: str
    meeting_url: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"uid": self.uid}
        if self.meeting_url:
            data["meetingUrl"] = self.meeting_url
        return data


def clean_guest(name, email):
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name:
        raise InvalidInput("Name is required")
    if not email or "@" not in email or email.startswith("@") or email.endswith("@"):
        raise InvalidInput("A valid email is required")
    return name, email


def resolve_slot(event_type: EventType, date_str, time_str, tz_name) -> Interval:
    """Guest wall-clock date and time -> the UTC slot it names."""
    if not tz_name:
        raise InvalidInput("Timezone is required")
    get_timezone(tz_name)
    day = parse_date(date_str)
    start = resolve_wall_clock(day, parse_flexible_time(time_str), tz_name)
    return Interval(start, start + timedelta(minutes=event_type.length))


def _load_host(host_id) -> Host:
    host = db.session.get(Host, host_id)
    if not host:
        raise NotFound("Host not found")
    return host


def get_booking(uid) -> Booking:
    booking = Booking.query.filter_by(uid=(uid or "").strip()).first()
    if not booking:
        raise NotFound("Booking not found")
    return booking


def _insert_booking(
    event_type: EventType,
    host: Host,
    slot: Interval,
    guest_name: str,
    guest_email: str,
    guest_timezone: str,
    notes: Optional[str],
    payment: Optional[Payment] = None,
    check_notice: bool = True,
) -> Booking:
    """Validate the slot and write booking, attendee and payment link in one commit.

    The caller must hold the event type lock.
    """
    ensure_slot_bookable(event_type, slot, check_notice=check_notice)

    booking = Booking(
        host_id=host.id,
        event_type_id=event_type.id,
        title=f"{event_type.title} between {host.display_name} and {guest_name}",
        description=notes or None,
        start_utc=to_storage(slot.start),
        end_utc=to_storage(slot.end),
        status=ACCEPTED,
        location_type=event_type.location_type,
        location_value=event_type.location_value,
        payment_id=payment.id if payment is not None else None,
    )
    booking.attendees.append(Attendee(name=guest_name, email=guest_email, timezone=guest_timezone))
    db.session.add(booking)
    try:
        db.session.flush()
        if payment is not None:
            payment.booking_id = booking.id
            payment.status = PAYMENT_COMPLETED
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlotUnavailable("This time is no longer available")
    log.info("Booking %s created for event type %s at %s", booking.uid, event_type.id, slot.start.isoformat())
    return booking


def notification_payload(booking: Booking, to_host: bool = False, **extra) -> Optional[NotificationPayload]:
    attendee = booking.attendee
    host = booking.host
    if attendee is None or host is None:
        return None
    payment = booking.payment
    return NotificationPayload(
        to=host.email if to_host else attendee.email,
        guest_name=attendee.name,
        guest_email=attendee.email,
        host_name=host.display_name,
        host_email=host.email,
        event_title=booking.event_type.title if booking.event_type else booking.title,
        start=booking.start_at,
        end=booking.end_at,
        timezone=host.timezone if to_host else attendee.timezone,
        booking_uid=booking.uid,
        location=booking.location_value,
        description=booking.description,
        price_cents=payment.amount_cents if payment is not None else None,
        **extra,
    )


def _notify(kind: str, booking: Booking, to_host: bool = False, **extra) -> bool:
    payload = notification_payload(booking, to_host=to_host, **extra)
    if payload is None:
        log.warning("Booking %s has no attendee or host, not sending %s email", booking.uid, kind)
        return False
    return send_for_host(kind, payload, booking.host_id)


def _create_calendar_event(booking: Booking, event_type: EventType) -> Optional[str]:
    service = get_calendar_service(booking.host_id)
    if service is None:
        return None
    attendee = booking.attendee
    attendees = [{"email": booking.host.email}]
    if attendee is not None:
        attendees.append({"email": attendee.email, "displayName": attendee.name})
    event = service.create_event(
        service.destination_calendar_id,
        summary=booking.title,
        start=booking.start_at,
        end=booking.end_at,
        attendees=attendees,
        description=booking.description or "",
        create_meet=event_type.location_type == LOCATION_GOOGLE_MEET,
        request_id=booking.uid,
    )
    try:
        db.session.add(BookingReference(
            booking_id=booking.id,
            credential_id=service.credential_id,
            type=GOOGLE_CALENDAR,
            external_id=event.external_id,
            meeting_url=event.meeting_url,
        ))
        if event.meeting_url:
            booking.location_value = event.meeting_url
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return event.meeting_url


def _update_calendar_event(booking: Booking) -> bool:
    ref = booking.reference(GOOGLE_CALENDAR)
    if ref is None:
        return False
    service = get_calendar_service(booking.host_id)
    if service is None:
        log.warning("No Google credential for host %s, event %s left unchanged", booking.host_id, ref.external_id)
        return False
    service.update_event(
        service.destination_calendar_id, ref.external_id, start=booking.start_at, end=booking.end_at
    )
    return True


def _delete_calendar_event(booking: Booking) -> bool:
    ref = booking.reference(GOOGLE_CALENDAR)
    if ref is None:
        return False
    service = get_calendar_service(booking.host_id)
    if service is None:
        log.warning("No Google credential for host %s, event %s left in place", booking.host_id, ref.external_id)
        return False
    service.delete_event(service.destination_calendar_id, ref.external_id)
    return True


def _after_create(booking: Booking, event_type: EventType) -> CreatedBooking:
    calendar = fire("calendar.create", _create_calendar_event, booking, event_type, booking_id=booking.id)
    fire("email.confirmation", _notify, CONFIRMATION, booking, booking_id=booking.id)
    fire("email.host_notification", _notify, HOST_NOTIFICATION, booking, to_host=True, booking_id=booking.id)
    return CreatedBooking(booking.uid, calendar.value if calendar.ok else None)


def create_booking(
    event_type_id,
    date_str,
    time_str,
    tz_name,
    name,
    email,
    notes=None,
    promo_code=None,
) -> CreatedBooking:
    """Book a free (or promo-code) slot directly."""
    name, email = clean_guest(name, email)
    event_type = load_event_type(event_type_id)
    host = _load_host(event_type.host_id)
    if event_type.requires_payment and not event_type.promo_matches(promo_code):
        raise PaymentRequired("This event type requires payment")
    slot = resolve_slot(event_type, date_str, time_str, tz_name)

    event_type = lock_event_type(event_type.id)
    booking = _insert_booking(event_type, host, slot, name, email, tz_name, notes)
    return _after_create(booking, event_type)


def _split_start(booking_start_time: str):
    date_str, _, time_str = (booking_start_time or "").partition("T")
    return date_str, time_str


def _refund_unbookable_payment(payment: Payment, reason: str) -> None:
    payment.status = PAYMENT_FAILED
    db.session.commit()
    log.warning("Paid checkout %s could not be booked: %s", payment.stripe_checkout_session_id, reason)
    if not payment.stripe_payment_intent_id:
        return
    outcome = fire("stripe.refund", process_refund, payment.stripe_payment_intent_id)
    if outcome.ok and outcome.value.success:
        payment.refund_id = outcome.value.refund_id
        payment.refund_amount_cents = payment.amount_cents
        db.session.commit()


def _payment_from_session(session) -> Payment:
    meta = session.get("metadata") or {}
    try:
        event_type_id = int(meta.get("event_type_id"))
    except (TypeError, ValueError):
        raise InvalidInput("Checkout session is missing booking metadata")
    payment = Payment(
        stripe_checkout_session_id=session["id"],
        amount_cents=session.get("amount_total") or 0,
        currency=session.get("currency") or current_app.config.get("STRIPE_CURRENCY", "usd"),
        status=PAYMENT_PENDING,
        event_type_id=event_type_id,
        guest_email=meta.get("guest_email") or "",
        guest_name=meta.get("guest_name") or "",
        guest_timezone=meta.get("guest_timezone") or current_app.config["DEFAULT_GUEST_TIMEZONE"],
        booking_start_time=meta.get("booking_start_time") or "",
        booking_notes=meta.get("booking_notes") or None,
    )
    db.session.add(payment)
    db.session.commit()
    return payment


def create_booking_from_checkout(session) -> Optional[Booking]:
    """Turn a completed checkout session into a booking.

    Safe to call more than once per session: the first call books, later
    calls return the same booking. Returns None when the slot could not be
    booked, in which case the payment is failed and refunded.
    """
    session_id = session["id"]
    payment = Payment.query.filter_by(stripe_checkout_session_id=session_id).first()
    if payment is None:
        log.warning("No payment row for checkout %s, rebuilding from metadata", session_id)
        payment = _payment_from_session(session)
    if payment.booking_id:
        return payment.booking
    if payment.status in (PAYMENT_FAILED, PAYMENT_REFUNDED):
        log.info("Checkout %s already settled as %s", session_id, payment.status)
        return None

    if session.get("payment_intent"):
        payment.stripe_payment_intent_id = session.get("payment_intent")
        db.session.commit()

    event_type = lock_event_type(payment.event_type_id)
    host = _load_host(event_type.host_id)
    date_str, time_str = _split_start(payment.booking_start_time)
    try:
        slot = resolve_slot(event_type, date_str, time_str, payment.guest_timezone)
        booking = _insert_booking(
            event_type,
            host,
            slot,
            payment.guest_name,
            payment.guest_email,
            payment.guest_timezone,
            payment.booking_notes,
            payment=payment,
            check_notice=False,
        )
    except (SlotUnavailable, BookingLimitExceeded, InvalidInput) as e:
        db.session.rollback()
        payment = Payment.query.filter_by(stripe_checkout_session_id=session_id).first()
        if payment.booking_id:
            # A concurrent delivery of the same event won
            return payment.booking
        _refund_unbookable_payment(payment, e.message)
        return None

    _after_create(booking, event_type)
    return booking


def expire_checkout(session_id) -> Optional[Payment]:
    payment = Payment.query.filter_by(stripe_checkout_session_id=session_id).first()
    if payment is None:
        log.info("Expired checkout %s has no payment row", session_id)
        return None
    if payment.status == PAYMENT_PENDING and not payment.booking_id:
        payment.status = PAYMENT_FAILED
        db.session.commit()
        log.info("Checkout %s expired, payment %s failed", session_id, payment.id)
    return payment


def reschedule_booking(uid, date_str, time_str, tz_name) -> Booking:
    """Move a live booking to a new slot in place; its uid does not change."""
    booking = get_booking(uid)
    if booking.status in (CANCELLED, REJECTED):
        raise InvalidState("Cannot reschedule a cancelled booking")

    event_type = lock_event_type(booking.event_type_id)
    slot = resolve_slot(event_type, date_str, time_str, tz_name)
    ensure_slot_bookable(event_type, slot, ignore_booking=booking)

    old_start, old_end = booking.start_at, booking.end_at
    booking.start_utc = to_storage(slot.start)
    booking.end_utc = to_storage(slot.end)
    booking.rescheduled_from_uid = booking.rescheduled_from_uid or booking.uid
    booking.reminder_status = REMINDER_PENDING
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlotUnavailable("This time is no longer available")
    log.info("Booking %s moved from %s to %s", booking.uid, old_start.isoformat(), slot.start.isoformat())

    fire("calendar.update", _update_calendar_event, booking, booking_id=booking.id)
    fire(
        "email.rescheduled",
        _notify_rescheduled,
        booking,
        old_start,
        old_end,
        booking_id=booking.id,
    )
    return booking


def _notify_rescheduled(booking: Booking, old_start, old_end) -> bool:
    payload = notification_payload(booking, new_start=booking.start_at, new_end=booking.end_at)
    if payload is None:
        return False
    payload.start = old_start
    payload.end = old_end
    return send_for_host(RESCHEDULED, payload, booking.host_id)


def _refund_window_hours(booking: Booking) -> int:
    event_type = booking.event_type
    if event_type is not None and event_type.refund_window_hours is not None:
        return event_type.refund_window_hours
    return current_app.config.get("DEFAULT_REFUND_WINDOW_HOURS", 24)


def cancel_booking(uid, reason=None) -> dict:
    booking = get_booking(uid)
    if booking.status == CANCELLED:
        raise AlreadyCancelled("This booking has already been cancelled")

    refund_id = None
    refund_amount = None
    payment = booking.payment
    if payment is not None and payment.status == PAYMENT_COMPLETED and payment.stripe_payment_intent_id:
        if is_eligible_for_refund(booking.start_at, _refund_window_hours(booking)):
            outcome = fire("stripe.refund", process_refund, payment.stripe_payment_intent_id, booking_id=booking.id)
            if outcome.ok and outcome.value.success:
                payment.status = PAYMENT_REFUNDED
                payment.refund_id = outcome.value.refund_id
                payment.refund_amount_cents = payment.amount_cents
                refund_id = outcome.value.refund_id
                refund_amount = payment.amount_cents
            elif outcome.ok:
                log.warning("Refund for booking %s was declined: %s", booking.id, outcome.value.error)
        else:
            log.info("Booking %s cancelled outside its refund window", booking.uid)

    booking.status = CANCELLED
    booking.cancellation_reason = (reason or "").strip() or None
    db.session.commit()
    log.info("Booking %s cancelled", booking.uid)

    fire("calendar.delete", _delete_calendar_event, booking, booking_id=booking.id)
    fire(
        "email.cancellation",
        _notify,
        CANCELLATION,
        booking,
        refund_amount_cents=refund_amount,
        booking_id=booking.id,
    )
    result = {"success": True, "refundProcessed": refund_id is not None}
    if refund_id:
        result["refundId"] = refund_id
    return result


def booking_status(session_id) -> dict:
    """Where a paid checkout stands, for the success page to poll."""
    if not session_id:
        raise InvalidInput("session_id is required")
    payment = Payment.query.filter_by(stripe_checkout_session_id=session_id).first()
    if payment is None:
        return {"status": "not_found"}
    booking = payment.booking
    if booking is not None:
        return {"status": "confirmed", "booking": booking.summary()}
    if payment.status in (PAYMENT_FAILED, PAYMENT_REFUNDED):
        return {"status": "failed"}
    return {"status": "pending"}
