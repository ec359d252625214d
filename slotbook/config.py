import os


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///slotbook.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public URL used in email links and Stripe redirects
    APP_URL = os.getenv("APP_URL", "http://localhost:5000")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Email (SMTP)
    EMAIL_ENABLED = _flag("EMAIL_ENABLED")
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = _flag("SMTP_USE_TLS", "true")
    EMAIL_FROM = os.getenv("EMAIL_FROM", SMTP_USERNAME or "no-reply@example.com")

    # Google OAuth / Calendar
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")
    CHECKOUT_EXPIRY_MINUTES = int(os.getenv("CHECKOUT_EXPIRY_MINUTES", "30"))

    # Reminder job
    CRON_SECRET = os.getenv("CRON_SECRET")
    REMINDER_TIMEZONE = os.getenv("REMINDER_TIMEZONE", "America/New_York")
    REMINDER_HOUR = int(os.getenv("REMINDER_HOUR", "8"))
    REMINDER_SCHEDULER_ENABLED = _flag("REMINDER_SCHEDULER_ENABLED")

    # Calls to Google and Stripe give up after this many seconds
    UPSTREAM_TIMEOUT_SECONDS = int(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10"))

    # Booking defaults
    DEFAULT_GUEST_TIMEZONE = os.getenv("DEFAULT_GUEST_TIMEZONE", "America/New_York")
    SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "15"))
    DEFAULT_REFUND_WINDOW_HOURS = int(os.getenv("DEFAULT_REFUND_WINDOW_HOURS", "24"))

    # Success page polling of /api/bookings/status
    STATUS_POLL_INTERVAL_SECONDS = float(os.getenv("STATUS_POLL_INTERVAL_SECONDS", "2"))
    STATUS_POLL_MAX_ATTEMPTS = int(os.getenv("STATUS_POLL_MAX_ATTEMPTS", "15"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    APP_URL = "https://book.example.com"
    EMAIL_ENABLED = False
    SMTP_HOST = None
    GOOGLE_CLIENT_ID = None
    GOOGLE_CLIENT_SECRET = None
    STRIPE_SECRET_KEY = None
    STRIPE_WEBHOOK_SECRET = None
    CRON_SECRET = None
    REMINDER_SCHEDULER_ENABLED = False
