import json

from slotbook import db
from slotbook.models.host import _now


GOOGLE_CALENDAR = "google_calendar"


class Credential(db.Model):
    """Stored OAuth tokens for an external calendar."""

    __tablename__ = "credentials"

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey("hosts.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False, default=GOOGLE_CALENDAR)
    key_json = db.Column(db.Text, nullable=False)
    # JSON list of calendar ids checked for busy time
    selected_calendars = db.Column(db.Text, nullable=True)
    destination_calendar_id = db.Column(db.String(255), nullable=False, default="primary")
    created_at = db.Column(db.DateTime, default=_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("host_id", "type", name="uq_credentials_host_type"),
    )

    @property
    def key(self) -> dict:
        return json.loads(self.key_json) if self.key_json else {}

    @property
    def calendar_ids(self) -> list:
        ids = []
        if self.selected_calendars:
            try:
                ids = [c for c in json.loads(self.selected_calendars) if c]
            except ValueError:
                ids = []
        return ids or ["primary"]

    @staticmethod
    def for_host(host_id: int, cred_type: str = GOOGLE_CALENDAR):
        return Credential.query.filter_by(host_id=host_id, type=cred_type).first()
