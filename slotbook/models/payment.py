from slotbook import db
from slotbook.models.host import _now


PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_REFUNDED = "refunded"
PAYMENT_FAILED = "failed"


class Payment(db.Model):
    """A checkout that exists before its booking does.

    Until the provider confirms payment the intended booking lives in the
    guest_* and booking_* snapshot columns.
    """

    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    stripe_checkout_session_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="usd")
    status = db.Column(db.String(20), nullable=False, default=PAYMENT_PENDING)

    event_type_id = db.Column(db.Integer, db.ForeignKey("event_types.id"), nullable=False)
    guest_email = db.Column(db.String(255), nullable=False)
    guest_name = db.Column(db.String(120), nullable=False)
    guest_timezone = db.Column(db.String(64), nullable=False)
    booking_start_time = db.Column(db.String(64), nullable=False)  # "YYYY-MM-DDT<time>" in guest timezone
    booking_notes = db.Column(db.Text, nullable=True)

    # Plain column: bookings.payment_id carries the foreign key
    booking_id = db.Column(db.Integer, nullable=True, index=True)
    refund_id = db.Column(db.String(255), nullable=True)
    refund_amount_cents = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_now, onupdate=_now, nullable=False)

    event_type = db.relationship("EventType")

    @property
    def booking(self):
        from slotbook.models.booking import Booking

        return db.session.get(Booking, self.booking_id) if self.booking_id else None
