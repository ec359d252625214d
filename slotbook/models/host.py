from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from slotbook import db, login_manager
from slotbook.errors import ConfigurationError
from slotbook.scheduling.timeutil import utcnow


def _now():
    return utcnow().replace(tzinfo=None)


class Host(UserMixin, db.Model):
    __tablename__ = "hosts"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=True)
    username = db.Column(db.String(120), unique=True, nullable=True)
    timezone = db.Column(db.String(64), default="America/New_York", nullable=False)
    time_format = db.Column(db.String(4), default="12h", nullable=False)  # 12h, 24h
    password_hash = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=_now, nullable=False)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @staticmethod
    def single() -> "Host":
        """The one host of a single-tenant deployment."""
        hosts = Host.query.limit(2).all()
        if len(hosts) != 1:
            raise ConfigurationError(f"Expected exactly one host, found {len(hosts)}")
        return hosts[0]


@login_manager.user_loader
def load_host(host_id):
    return db.session.get(Host, int(host_id))
