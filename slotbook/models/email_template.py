from slotbook import db


CONFIRMATION = "confirmation"
REMINDER = "reminder"
CANCELLATION = "cancellation"
RESCHEDULED = "rescheduled"
HOST_NOTIFICATION = "host_notification"

TEMPLATE_TYPES = (CONFIRMATION, REMINDER, CANCELLATION, RESCHEDULED, HOST_NOTIFICATION)


class EmailTemplate(db.Model):
    """Per-host overrides for one notification kind. No row means defaults, enabled."""

    __tablename__ = "email_templates"

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey("hosts.id"), nullable=False, index=True)
    template_type = db.Column(db.String(32), nullable=False)
    subject = db.Column(db.String(255), nullable=True)
    greeting = db.Column(db.Text, nullable=True)
    body_text = db.Column(db.Text, nullable=True)
    footer_text = db.Column(db.Text, nullable=True)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        db.UniqueConstraint("host_id", "template_type", name="uq_email_templates_host_type"),
    )

    @staticmethod
    def for_host(host_id: int, template_type: str):
        return EmailTemplate.query.filter_by(host_id=host_id, template_type=template_type).first()
