from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from slotbook.models import Booking, EmailTemplate
from slotbook.models.booking import REMINDER_PENDING, REMINDER_SENT, REMINDER_SKIPPED
from slotbook.reminders import due_bookings, send_due_reminders, start_reminder_scheduler


# 08:00 in New York, the reminder timezone
NOW = datetime(2030, 3, 4, 13, 0, tzinfo=timezone.utc)


def at(hour, minute=0, days=0):
    return NOW.replace(hour=hour, minute=minute) + timedelta(days=days)


@pytest.fixture
def todays_booking(event_type, make_booking):
    return make_booking(event_type, at(15), at(15, 30))


def test_due_bookings_are_todays_accepted_pending(event_type, make_booking, todays_booking):
    make_booking(event_type, at(15, days=1), at(15, 30, days=1))
    make_booking(event_type, at(16), at(16, 30), status="CANCELLED")
    make_booking(event_type, at(17), at(17, 30), reminder_status=REMINDER_SENT)
    # 03:00 UTC on the 5th is still the 4th in New York
    late = make_booking(event_type, at(3, days=1), at(3, 30, days=1))

    due = due_bookings(NOW)
    assert [b.id for b in due] == [todays_booking.id, late.id]


def test_sends_and_marks(todays_booking, db):
    with patch("slotbook.reminders.send", return_value=True) as send:
        result = send_due_reminders(NOW)

    assert (result.processed, result.sent, result.skipped, result.failed) == (1, 1, 0, 0)
    kind, payload, template = send.call_args.args
    assert kind == "reminder"
    assert payload.to == "gus@example.com"
    assert payload.timezone == "Europe/London"
    assert template is None
    assert db.session.get(Booking, todays_booking.id).reminder_status == REMINDER_SENT

    # Already sent, so a second run finds nothing
    assert send_due_reminders(NOW).processed == 0


def test_missing_attendee_is_skipped(event_type, make_booking, db):
    booking = make_booking(event_type, at(15), at(15, 30), attendee=False)
    with patch("slotbook.reminders.send") as send:
        result = send_due_reminders(NOW)
    send.assert_not_called()
    assert result.skipped == 1
    assert db.session.get(Booking, booking.id).reminder_status == REMINDER_SKIPPED


def test_disabled_template_is_skipped(todays_booking, host, db):
    db.session.add(EmailTemplate(host_id=host.id, template_type="reminder", is_enabled=False))
    db.session.commit()
    # Email is configured, so only the template stops it
    with patch("slotbook.notifications.email.is_email_configured", return_value=True), \
            patch("slotbook.notifications.email.smtplib.SMTP") as smtp:
        result = send_due_reminders(NOW)
    smtp.assert_not_called()
    assert result.skipped == 1
    assert db.session.get(Booking, todays_booking.id).reminder_status == REMINDER_SKIPPED


def test_one_failure_does_not_stop_the_batch(event_type, make_booking, db):
    first = make_booking(event_type, at(15), at(15, 30))
    second = make_booking(event_type, at(16), at(16, 30))
    with patch("slotbook.reminders.send", side_effect=[OSError("smtp down"), True]):
        result = send_due_reminders(NOW)

    assert (result.processed, result.sent, result.failed) == (2, 1, 1)
    assert first.uid in result.errors[0]
    assert db.session.get(Booking, first.id).reminder_status == REMINDER_PENDING
    assert db.session.get(Booking, second.id).reminder_status == REMINDER_SENT


class TestCronEndpoint:
    def test_fails_closed_without_secret(self, client, host):
        assert client.get("/api/cron/reminders").status_code == 503

    def test_rejects_wrong_token(self, client, app, host):
        app.config["CRON_SECRET"] = "s3cret"
        resp = client.get("/api/cron/reminders", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_runs_with_token(self, client, app, host):
        app.config["CRON_SECRET"] = "s3cret"
        resp = client.get("/api/cron/reminders", headers={"Authorization": "Bearer s3cret"})
        assert resp.status_code == 200
        assert resp.get_json()["processed"] == 0


def test_scheduler_registers_daily_job(app):
    with patch("slotbook.reminders.scheduler") as scheduler:
        scheduler.running = False
        start_reminder_scheduler(app)

    scheduler.start.assert_called_once()
    kwargs = scheduler.add_job.call_args.kwargs
    assert kwargs["id"] == "daily-reminders"
    assert str(kwargs["trigger"].timezone) == "America/New_York"
