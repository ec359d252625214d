import itertools
from datetime import date

import pytest

from slotbook import create_app, db as _db
from slotbook.config import TestConfig
from slotbook.models import Booking, EventType, Host, Schedule
from slotbook.models.booking import Attendee


# A Monday far enough ahead that minimum notice never gets in the way.
# New York is still on EST that day, so 09:00 local is 14:00 UTC.
FUTURE_MONDAY = date(2030, 3, 4)

_slugs = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def host(app):
    host = Host(email="host@example.com", name="Hannah Host", timezone="America/New_York")
    host.set_password("correct horse")
    _db.session.add(host)
    _db.session.flush()
    Schedule.create_default(host.id, "America/New_York")
    _db.session.commit()
    return host


@pytest.fixture
def make_event_type(host):
    def _make(**overrides):
        fields = {
            "host_id": host.id,
            "title": "Intro Call",
            "slug": f"intro-call-{next(_slugs)}",
            "length": 30,
            "location_type": "in_person",
            "location_value": "Office",
        }
        fields.update(overrides)
        event_type = EventType(**fields)
        event_type.validate()
        _db.session.add(event_type)
        _db.session.commit()
        return event_type

    return _make


@pytest.fixture
def event_type(make_event_type):
    return make_event_type()


@pytest.fixture
def make_booking(host):
    """Insert a booking row directly, bypassing validation and side effects."""

    def _make(event_type, start, end, status="ACCEPTED", attendee=True, **fields):
        booking = Booking(
            host_id=host.id,
            event_type_id=event_type.id,
            title=f"{event_type.title} between Hannah Host and Gus Guest",
            start_utc=start.replace(tzinfo=None),
            end_utc=end.replace(tzinfo=None),
            status=status,
            **fields,
        )
        if attendee:
            booking.attendees.append(
                Attendee(name="Gus Guest", email="gus@example.com", timezone="Europe/London")
            )
        _db.session.add(booking)
        _db.session.commit()
        return booking

    return _make
