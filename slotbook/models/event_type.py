from slugify import slugify

from slotbook import db
from slotbook.errors import InvalidInput
from slotbook.models.host import _now


MIN_PRICE_CENTS = 50

LOCATION_GOOGLE_MEET = "google_meet"


class EventType(db.Model):
    __tablename__ = "event_types"

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey("hosts.id"), nullable=False, index=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey("schedules.id"), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    length = db.Column(db.Integer, nullable=False, default=30)  # minutes
    location_type = db.Column(db.String(32), nullable=False, default="google_meet")
    location_value = db.Column(db.String(512), nullable=True)
    hidden = db.Column(db.Boolean, nullable=False, default=False)

    buffer_before = db.Column(db.Integer, nullable=False, default=0)
    buffer_after = db.Column(db.Integer, nullable=False, default=0)
    minimum_notice = db.Column(db.Integer, nullable=False, default=120)
    booking_window_days = db.Column(db.Integer, nullable=True)
    booking_limits_per_day = db.Column(db.Integer, nullable=True)
    booking_limits_per_week = db.Column(db.Integer, nullable=True)

    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    price_cents = db.Column(db.Integer, nullable=True)
    refund_window_hours = db.Column(db.Integer, nullable=False, default=24)
    promo_code = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, default=_now, nullable=False)

    host = db.relationship("Host", backref=db.backref("event_types", lazy="dynamic"))
    schedule = db.relationship("Schedule")

    __table_args__ = (
        db.UniqueConstraint("host_id", "slug", name="uq_event_types_host_slug"),
    )

    def validate(self) -> None:
        if not self.length or self.length <= 0:
            raise InvalidInput("Duration must be positive")
        if self.is_paid and (self.price_cents is None or self.price_cents < MIN_PRICE_CENTS):
            raise InvalidInput("Paid event types need a price of at least $0.50")

    @property
    def requires_payment(self) -> bool:
        return bool(self.is_paid and self.price_cents)

    def promo_matches(self, code) -> bool:
        if not code or not self.promo_code:
            return False
        return code.strip().lower() == self.promo_code.strip().lower()

    @staticmethod
    def generate_slug(title: str) -> str:
        return slugify(title) or "meeting"
