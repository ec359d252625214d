"""Daily reminder emails for today's bookings.

Runs from the in-process APScheduler job, the send-reminders CLI command or
an external cron hitting /api/cron/reminders. Each booking is handled on its
own; one bad row never stops the batch.
"""
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from flask import Blueprint, current_app, jsonify, request

from slotbook import db
from slotbook.booking.service import notification_payload
from slotbook.models.booking import (
    ACCEPTED,
    REMINDER_PENDING,
    REMINDER_SENT,
    REMINDER_SKIPPED,
    Booking,
)
from slotbook.models.email_template import REMINDER
from slotbook.notifications.email import load_template, send
from slotbook.scheduling.timeutil import local_date, local_day_bounds, to_storage, utcnow


log = logging.getLogger(__name__)

reminders_bp = Blueprint("reminders", __name__, url_prefix="/api/cron")

scheduler = BackgroundScheduler()


@dataclass
class ReminderResult:
    processed: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors,
        }


def due_bookings(now: Optional[datetime] = None) -> List[Booking]:
    """Accepted bookings still awaiting a reminder that start today."""
    tz_name = current_app.config.get("REMINDER_TIMEZONE", "America/New_York")
    today = local_date(now or utcnow(), tz_name)
    start, end = local_day_bounds(today, tz_name)
    return (
        Booking.query.filter(
            Booking.status == ACCEPTED,
            Booking.reminder_status == REMINDER_PENDING,
            Booking.start_utc >= to_storage(start),
            Booking.start_utc < to_storage(end),
        )
        .order_by(Booking.start_utc.asc())
        .all()
    )


def _remind(booking: Booking) -> bool:
    """Send one reminder; False when the booking is skipped."""
    if booking.attendee is None or booking.host is None or booking.event_type is None:
        log.info("Booking %s is missing attendee, host or event type, skipping reminder", booking.uid)
        return False
    template = load_template(booking.host_id, REMINDER)
    return send(REMINDER, notification_payload(booking), template)


def send_due_reminders(now: Optional[datetime] = None) -> ReminderResult:
    result = ReminderResult()
    for booking in due_bookings(now):
        result.processed += 1
        try:
            sent = _remind(booking)
            booking.reminder_status = REMINDER_SENT if sent else REMINDER_SKIPPED
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            result.failed += 1
            result.errors.append(f"{booking.uid}: {e}")
            log.exception("Reminder failed for booking %s", booking.id)
            continue
        if sent:
            result.sent += 1
        else:
            result.skipped += 1
    log.info(
        "Reminders processed=%s sent=%s skipped=%s failed=%s",
        result.processed, result.sent, result.skipped, result.failed,
    )
    return result


@reminders_bp.route("/reminders", methods=["GET", "POST"])
def cron_reminders():
    secret = current_app.config.get("CRON_SECRET")
    if not secret:
        return jsonify({"error": "Cron secret not configured"}), 503
    auth = request.headers.get("Authorization", "")
    if not hmac.compare_digest(auth.encode(), f"Bearer {secret}".encode()):
        return jsonify({"error": "Unauthorized"}), 401
    return jsonify(send_due_reminders().to_dict())


def start_reminder_scheduler(app) -> BackgroundScheduler:
    """Run send_due_reminders every day at REMINDER_HOUR in REMINDER_TIMEZONE."""

    def job():
        with app.app_context():
            send_due_reminders()

    scheduler.add_job(
        func=job,
        trigger=CronTrigger(
            hour=app.config.get("REMINDER_HOUR", 8),
            minute=0,
            timezone=app.config.get("REMINDER_TIMEZONE", "America/New_York"),
        ),
        id="daily-reminders",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    if not scheduler.running:
        scheduler.start()
    log.info("Reminder scheduler started")
    return scheduler
