from datetime import datetime, timezone
from unittest.mock import patch

from slotbook.models import Booking, EventType, Host, Schedule
from tests.conftest import FUTURE_MONDAY


NY = "America/New_York"
DAY = FUTURE_MONDAY.isoformat()


def booking_body(event_type, **overrides):
    body = {
        "eventTypeId": event_type.id,
        "date": DAY,
        "time": "9:00 AM",
        "timezone": NY,
        "name": "Gus Guest",
        "email": "gus@example.com",
    }
    body.update(overrides)
    return body


class TestAvailability:
    def test_slots_for_host_day(self, client, event_type):
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}&date={DAY}&timezone={NY}")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["timeFormat"] == "12h"
        assert data["slots"][0] == "9:00 AM"
        assert data["slots"][-1] == "4:30 PM"
        assert len(data["slots"]) == 31

    def test_24h_format(self, client, event_type):
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}&date={DAY}&timezone={NY}&timeFormat=24h")
        data = resp.get_json()
        assert data["timeFormat"] == "24h"
        assert data["slots"][0] == "09:00"

    def test_host_preference_is_default_format(self, client, db, host, event_type):
        host.time_format = "24h"
        db.session.commit()
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}&date={DAY}&timezone={NY}")
        assert resp.get_json()["timeFormat"] == "24h"

    def test_weekend_is_empty(self, client, event_type):
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}&date=2030-03-03&timezone={NY}")
        assert resp.get_json()["slots"] == []

    def test_booked_slots_disappear(self, client, event_type):
        client.post("/api/bookings", json=booking_body(event_type))
        slots = client.get(f"/api/availability?eventTypeId={event_type.id}&date={DAY}&timezone={NY}").get_json()["slots"]
        assert "9:00 AM" not in slots
        assert "9:15 AM" not in slots
        assert "9:30 AM" in slots

    def test_limit_reached_hides_the_day(self, client, make_event_type):
        event_type = make_event_type(booking_limits_per_day=1)
        client.post("/api/bookings", json=booking_body(event_type))
        slots = client.get(f"/api/availability?eventTypeId={event_type.id}&date={DAY}&timezone={NY}").get_json()["slots"]
        assert slots == []

    def test_far_timezone_sees_its_own_day(self, client, event_type):
        # 09:00-17:00 New York is 23:00-07:00 in Tokyo, across two Tokyo dates
        tuesday = "2030-03-05"
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}&date={tuesday}&timezone=Asia/Tokyo")
        slots = resp.get_json()["slots"]
        assert slots[0] == "12:00 AM"
        assert "6:30 AM" in slots
        assert "7:00 AM" not in slots
        assert slots[-1] == "11:45 PM"

        resp = client.post(
            "/api/bookings", json=booking_body(event_type, date=tuesday, time="12:00 AM", timezone="Asia/Tokyo")
        )
        assert resp.status_code == 201
        booking = Booking.query.one()
        assert booking.start_utc == datetime(2030, 3, 4, 15, 0)

    def test_missing_date(self, client, event_type):
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}")
        assert resp.status_code == 400

    def test_unknown_event_type(self, client, host):
        resp = client.get(f"/api/availability?eventTypeId=4242&date={DAY}")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "not_found"

    def test_bad_timezone(self, client, event_type):
        resp = client.get(f"/api/availability?eventTypeId={event_type.id}&date={DAY}&timezone=Not/AZone")
        assert resp.status_code == 400

    def test_available_dates(self, client, event_type):
        resp = client.get(f"/api/availability/dates?eventTypeId={event_type.id}&start=2030-03-01&end=2030-03-10")
        assert resp.get_json()["dates"] == [
            "2030-03-01", "2030-03-04", "2030-03-05", "2030-03-06", "2030-03-07", "2030-03-08",
        ]

    def test_available_dates_follow_the_guest_day(self, client, event_type):
        # New York 9 AM-5 PM is 11 PM-7 AM in Tokyo, so Tokyo sees Monday through Saturday
        url = f"/api/availability/dates?eventTypeId={event_type.id}&start=2030-03-03&end=2030-03-10&timezone=Asia/Tokyo"
        dates = client.get(url).get_json()["dates"]
        assert dates == ["2030-03-04", "2030-03-05", "2030-03-06", "2030-03-07", "2030-03-08", "2030-03-09"]

        saturday = client.get(f"/api/availability?eventTypeId={event_type.id}&date=2030-03-09&timezone=Asia/Tokyo")
        assert saturday.get_json()["slots"][0] == "12:00 AM"
        sunday = client.get(f"/api/availability?eventTypeId={event_type.id}&date=2030-03-10&timezone=Asia/Tokyo")
        assert sunday.get_json()["slots"] == []

    def test_available_dates_respect_booking_window(self, client, make_event_type):
        event_type = make_event_type(booking_window_days=3)
        with patch("slotbook.scheduling.service.utcnow", return_value=datetime(2030, 3, 1, 12, tzinfo=timezone.utc)):
            resp = client.get(f"/api/availability/dates?eventTypeId={event_type.id}&start=2030-03-01&end=2030-03-10")
        assert resp.get_json()["dates"] == ["2030-03-01", "2030-03-04"]


class TestBookings:
    def test_create(self, client, event_type):
        resp = client.post("/api/bookings", json=booking_body(event_type))
        assert resp.status_code == 201
        uid = resp.get_json()["uid"]
        assert "meetingUrl" not in resp.get_json()

        data = client.get(f"/api/bookings/{uid}").get_json()
        assert data["uid"] == uid
        assert data["status"] == "ACCEPTED"
        assert data["startTime"] == "2030-03-04T14:00:00+00:00"
        assert data["attendeeName"] == "Gus Guest"

    def test_invalid_email(self, client, event_type):
        resp = client.post("/api/bookings", json=booking_body(event_type, email="nope"))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_input"

    def test_invalid_time(self, client, event_type):
        resp = client.post("/api/bookings", json=booking_body(event_type, time="9ish"))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_time_format"

    def test_body_must_be_an_object(self, client, event_type):
        resp = client.post("/api/bookings", json=[event_type.id])
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_input"
        assert client.post("/api/stripe/create-checkout", json="hello").status_code == 400

    def test_conflict(self, client, event_type):
        client.post("/api/bookings", json=booking_body(event_type))
        resp = client.post("/api/bookings", json=booking_body(event_type, email="other@example.com"))
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "slot_unavailable"

    def test_paid_event_type(self, client, make_event_type):
        event_type = make_event_type(is_paid=True, price_cents=2000)
        resp = client.post("/api/bookings", json=booking_body(event_type))
        assert resp.status_code == 402

    def test_unexpected_error_is_generic(self, client, event_type):
        with patch("slotbook.booking.routes.create_booking", side_effect=RuntimeError("db password is hunter2")):
            resp = client.post("/api/bookings", json=booking_body(event_type))
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Failed to create booking"}

    def test_reschedule_and_cancel(self, client, event_type):
        uid = client.post("/api/bookings", json=booking_body(event_type)).get_json()["uid"]

        resp = client.post(f"/api/bookings/{uid}/reschedule", json={"date": DAY, "time": "2:00 PM", "timezone": NY})
        assert resp.get_json() == {"success": True}
        assert client.get(f"/api/bookings/{uid}").get_json()["startTime"] == "2030-03-04T19:00:00+00:00"

        resp = client.post(f"/api/bookings/{uid}/cancel", json={"reason": "Conflict"})
        assert resp.get_json() == {"success": True, "refundProcessed": False}

        resp = client.post(f"/api/bookings/{uid}/cancel", json={})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "already_cancelled"

        resp = client.post(f"/api/bookings/{uid}/reschedule", json={"date": DAY, "time": "3:00 PM", "timezone": NY})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_state"

        data = client.get(f"/api/bookings/{uid}").get_json()
        assert data["status"] == "CANCELLED"
        assert data["cancellationReason"] == "Conflict"

    def test_unknown_booking(self, client, host):
        assert client.get("/api/bookings/missing").status_code == 404
        assert client.post("/api/bookings/missing/cancel", json={}).status_code == 404


class TestSetupAndAuth:
    def test_setup_status(self, client, host):
        data = client.get("/api/setup/status").get_json()
        assert data["database"] is True
        assert data["stripe"] is False
        assert data["email"] is False
        assert data["cronSecret"] is False
        assert data["hostCount"] == 1
        assert data["ready"] is True

    def test_login_logout(self, client, host):
        resp = client.post("/auth/login", json={"email": "HOST@example.com", "password": "wrong"})
        assert resp.status_code == 401

        resp = client.post("/auth/login", json={"email": "host@example.com", "password": "correct horse"})
        assert resp.status_code == 200
        assert client.get("/auth/me").get_json()["email"] == "host@example.com"

        assert client.post("/auth/logout").status_code == 200
        assert client.get("/auth/me").status_code == 401

    def test_login_without_host(self, client):
        resp = client.post("/auth/login", json={"email": "host@example.com", "password": "x"})
        assert resp.status_code == 500
        assert resp.get_json()["code"] == "configuration_error"

    def test_google_connect_needs_oauth_config(self, client, host):
        client.post("/auth/login", json={"email": "host@example.com", "password": "correct horse"})
        resp = client.get("/google/connect")
        assert resp.status_code == 500
        assert resp.get_json()["code"] == "configuration_error"


def test_create_host_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "create-host", "--email", "Owner@Example.com", "--name", "Olive Owner",
        "--password", "pw", "--timezone", "Europe/London",
    ])
    assert "Created host: owner@example.com" in result.output

    host = Host.single()
    assert host.check_password("pw")
    schedule = Schedule.default_for(host.id)
    assert schedule.timezone == "Europe/London"
    assert sorted(a.day_of_week for a in schedule.availability) == [1, 2, 3, 4, 5]


def test_send_reminders_command(app, host):
    result = app.test_cli_runner().invoke(args=["send-reminders"])
    assert "Processed 0" in result.output


def test_create_event_type_command(app, host):
    runner = app.test_cli_runner()
    runner.invoke(args=["create-event-type", "--title", "Deep Dive!", "--length", "60"])
    result = runner.invoke(args=["create-event-type", "--title", "Deep Dive", "--price-cents", "2500"])
    assert "/book/deep-dive-2" in result.output

    first, second = EventType.query.order_by(EventType.id).all()
    assert first.slug == "deep-dive"
    assert first.length == 60
    assert second.requires_payment

    result = runner.invoke(args=["create-event-type", "--title", "Too Cheap", "--price-cents", "10"])
    assert result.exit_code != 0
    assert EventType.query.count() == 2
