import secrets

from slotbook import db
from slotbook.models.host import _now
from slotbook.scheduling.timeutil import ensure_utc


PENDING = "PENDING"
ACCEPTED = "ACCEPTED"
CANCELLED = "CANCELLED"
REJECTED = "REJECTED"

REMINDER_PENDING = "pending"
REMINDER_SENT = "sent"
REMINDER_SKIPPED = "skipped"

_ACTIVE_ONLY = db.text("status != 'CANCELLED'")


def generate_uid() -> str:
    return secrets.token_urlsafe(16)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), unique=True, nullable=False, default=generate_uid)
    host_id = db.Column(db.Integer, db.ForeignKey("hosts.id"), nullable=False, index=True)
    event_type_id = db.Column(db.Integer, db.ForeignKey("event_types.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_utc = db.Column(db.DateTime, nullable=False, index=True)
    end_utc = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=ACCEPTED)
    location_type = db.Column(db.String(32), nullable=True)
    location_value = db.Column(db.String(512), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)
    rescheduled_from_uid = db.Column(db.String(64), nullable=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, unique=True)
    reminder_status = db.Column(db.String(16), nullable=False, default=REMINDER_PENDING)
    created_at = db.Column(db.DateTime, default=_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_now, onupdate=_now, nullable=False)

    host = db.relationship("Host")
    event_type = db.relationship("EventType")
    payment = db.relationship("Payment", foreign_keys=[payment_id])
    attendees = db.relationship(
        "Attendee", backref="booking", cascade="all, delete-orphan", lazy="selectin"
    )
    references = db.relationship(
        "BookingReference", backref="booking", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (
        # At most one live booking per event type and start instant
        db.Index(
            "uq_bookings_event_type_start_active",
            "event_type_id",
            "start_utc",
            unique=True,
            sqlite_where=_ACTIVE_ONLY,
            postgresql_where=_ACTIVE_ONLY,
        ),
    )

    @property
    def start_at(self):
        return ensure_utc(self.start_utc)

    @property
    def end_at(self):
        return ensure_utc(self.end_utc)

    @property
    def attendee(self):
        return self.attendees[0] if self.attendees else None

    def reference(self, ref_type: str):
        for ref in self.references:
            if ref.type == ref_type:
                return ref
        return None

    def summary(self) -> dict:
        return {
            "uid": self.uid,
            "title": self.title,
            "status": self.status,
            "startTime": self.start_at.isoformat(),
            "endTime": self.end_at.isoformat(),
            "location": self.location_value,
            "eventType": self.event_type.title if self.event_type else None,
        }


class Attendee(db.Model):
    __tablename__ = "attendees"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")
    created_at = db.Column(db.DateTime, default=_now, nullable=False)


class BookingReference(db.Model):
    __tablename__ = "booking_references"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)
    credential_id = db.Column(db.Integer, db.ForeignKey("credentials.id"), nullable=True)
    type = db.Column(db.String(32), nullable=False)
    external_id = db.Column(db.String(255), nullable=False)
    meeting_url = db.Column(db.String(512), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("booking_id", "type", name="uq_booking_references_booking_type"),
    )
