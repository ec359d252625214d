"""Booking lifecycle emails over SMTP.

send() is the only entry point the booking code uses. It quietly does
nothing when email is not configured or the host switched the kind off;
SMTP errors propagate so callers can apply their own failure policy.
"""
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

from flask import current_app

from slotbook.integrations.calendar_links import (
    generate_ics,
    google_calendar_url,
    outlook_url,
    yahoo_calendar_url,
)
from slotbook.models.email_template import (
    CANCELLATION,
    CONFIRMATION,
    HOST_NOTIFICATION,
    REMINDER,
    RESCHEDULED,
    EmailTemplate,
)
from slotbook.scheduling.timeutil import format_long


log = logging.getLogger(__name__)


@dataclass
class NotificationPayload:
    to: str
    guest_name: str
    guest_email: str
    host_name: str
    host_email: str
    event_title: str
    start: datetime
    end: datetime
    timezone: str
    booking_uid: str
    location: Optional[str] = None
    description: Optional[str] = None
    price_cents: Optional[int] = None
    new_start: Optional[datetime] = None
    new_end: Optional[datetime] = None
    refund_amount_cents: Optional[int] = None


_DEFAULTS = {
    CONFIRMATION: ("Confirmed: {{eventTitle}} with {{hostName}}", "Hi {{guestName}}, your meeting is booked."),
    REMINDER: ("Reminder: {{eventTitle}} with {{hostName}} today", "Hi {{guestName}}, this is a reminder about your meeting today."),
    CANCELLATION: ("Cancelled: {{eventTitle}} with {{hostName}}", "Your meeting has been cancelled."),
    RESCHEDULED: ("Rescheduled: {{eventTitle}} with {{hostName}}", "Hi {{guestName}}, your meeting has been moved."),
    HOST_NOTIFICATION: ("New booking: {{eventTitle}} with {{guestName}}", "Hi {{hostName}}, you have a new booking."),
}


def format_price(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def manage_urls(booking_uid: str) -> tuple[str, str]:
    base = current_app.config.get("APP_URL", "").rstrip("/")
    return f"{base}/reschedule/{booking_uid}", f"{base}/cancel/{booking_uid}"


def _fill(text: str, payload: NotificationPayload) -> str:
    return (
        text.replace("{{eventTitle}}", payload.event_title)
        .replace("{{hostName}}", payload.host_name)
        .replace("{{guestName}}", payload.guest_name)
    )


def is_email_configured() -> bool:
    cfg = current_app.config
    return bool(cfg.get("EMAIL_ENABLED") and cfg.get("SMTP_HOST") and cfg.get("EMAIL_FROM"))


def load_template(host_id: int, kind: str) -> Optional[EmailTemplate]:
    return EmailTemplate.for_host(host_id, kind)


def render(kind: str, payload: NotificationPayload, template: Optional[EmailTemplate] = None) -> tuple[str, str]:
    """Subject and plain-text body for kind, with template overrides applied."""
    default_subject, default_greeting = _DEFAULTS[kind]
    subject = _fill((template and template.subject) or default_subject, payload)
    greeting = _fill((template and template.greeting) or default_greeting, payload)

    lines = [greeting, ""]
    if template and template.body_text:
        lines += [_fill(template.body_text, payload), ""]

    when = format_long(payload.start, payload.timezone)
    lines.append(f"What: {payload.event_title}")
    if kind == RESCHEDULED and payload.new_start:
        lines.append(f"Was: {when}")
        lines.append(f"Now: {format_long(payload.new_start, payload.timezone)} ({payload.timezone})")
    else:
        lines.append(f"When: {when} ({payload.timezone})")
    if kind == HOST_NOTIFICATION:
        lines.append(f"Guest: {payload.guest_name} <{payload.guest_email}>")
    else:
        lines.append(f"Who: {payload.host_name}")
    if payload.location and kind != CANCELLATION:
        lines.append(f"Where: {payload.location}")
    if payload.description:
        lines.append(f"Notes: {payload.description}")

    if kind == CANCELLATION:
        if payload.refund_amount_cents:
            lines.append(
                f"Refund: {format_price(payload.refund_amount_cents)} refunded. "
                "It will appear on your statement within 5-10 business days."
            )
        elif payload.price_cents:
            lines.append(f"Payment: {format_price(payload.price_cents)} - no refund (outside refund window)")
    elif payload.price_cents:
        lines.append(f"Payment: {format_price(payload.price_cents)} paid")

    if kind in (CONFIRMATION, RESCHEDULED, REMINDER):
        start = payload.new_start or payload.start
        end = payload.new_end or payload.end
        args = (payload.event_title, start, end, payload.description, payload.location)
        lines += [
            "",
            "Add to calendar:",
            f"  Google: {google_calendar_url(*args)}",
            f"  Outlook: {outlook_url(*args)}",
            f"  Yahoo: {yahoo_calendar_url(*args)}",
        ]

    if kind != CANCELLATION and kind != HOST_NOTIFICATION:
        reschedule_url, cancel_url = manage_urls(payload.booking_uid)
        lines += ["", f"Reschedule: {reschedule_url}", f"Cancel: {cancel_url}"]

    if template and template.footer_text:
        lines += ["", template.footer_text]
    return subject, "\n".join(lines) + "\n"


def _invite(kind: str, payload: NotificationPayload) -> Optional[str]:
    if kind not in (CONFIRMATION, RESCHEDULED):
        return None
    return generate_ics(
        uid=payload.booking_uid,
        title=payload.event_title,
        start=payload.new_start or payload.start,
        end=payload.new_end or payload.end,
        description=payload.description,
        location=payload.location,
        organizer=(payload.host_name, payload.host_email),
        attendee=(payload.guest_name, payload.guest_email),
        sequence=1 if kind == RESCHEDULED else 0,
    )


def send(kind: str, payload: NotificationPayload, template: Optional[EmailTemplate] = None) -> bool:
    """Send one notification. Returns False when skipped."""
    if template is not None and template.is_enabled is False:
        log.info("%s email template is disabled, skipping %s", kind, payload.booking_uid)
        return False
    if not is_email_configured():
        log.info("Email not configured, skipping %s email to %s", kind, payload.to)
        return False

    cfg = current_app.config
    subject, body = render(kind, payload, template)
    msg = EmailMessage()
    msg["From"] = cfg["EMAIL_FROM"]
    msg["To"] = payload.to
    msg["Subject"] = subject
    msg.set_content(body)
    ics = _invite(kind, payload)
    if ics:
        msg.add_attachment(
            ics.encode("utf-8"), maintype="text", subtype="calendar", filename="invite.ics"
        )

    with smtplib.SMTP(cfg["SMTP_HOST"], cfg.get("SMTP_PORT", 587),
                      timeout=cfg.get("UPSTREAM_TIMEOUT_SECONDS", 10)) as server:
        if cfg.get("SMTP_USE_TLS", True):
            server.starttls()
        if cfg.get("SMTP_USERNAME") and cfg.get("SMTP_PASSWORD"):
            server.login(cfg["SMTP_USERNAME"], cfg["SMTP_PASSWORD"])
        server.send_message(msg)
    log.info("Sent %s email for booking %s", kind, payload.booking_uid)
    return True


def send_for_host(kind: str, payload: NotificationPayload, host_id: int) -> bool:
    return send(kind, payload, load_template(host_id, kind))
