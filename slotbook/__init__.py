from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
import logging
import click
from dotenv import load_dotenv

db = SQLAlchemy()
login_manager = LoginManager()


def create_app(config_object=None):
    # Load .env if present to simplify local setup
    load_dotenv()
    app = Flask(__name__)

    from .config import Config
    app.config.from_object(config_object or Config)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    # Init extensions
    db.init_app(app)
    login_manager.init_app(app)

    # Models import for SQLAlchemy configuration
    from . import models  # noqa: F401
    from .errors import register_error_handlers

    register_error_handlers(app)

    # Blueprints
    from .auth.routes import auth_bp
    from .scheduling.routes import scheduling_bp
    from .booking.routes import booking_bp
    from .payments.routes import payments_bp
    from .google.routes import google_bp
    from .reminders import reminders_bp, start_reminder_scheduler
    from .setup_status import setup_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(scheduling_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(google_bp)
    app.register_blueprint(reminders_bp)
    app.register_blueprint(setup_bp)

    # Create tables if not exist
    with app.app_context():
        db.create_all()

    if app.config.get("REMINDER_SCHEDULER_ENABLED"):
        start_reminder_scheduler(app)

    # CLI helpers
    @app.cli.command("create-host")
    @click.option("--email", prompt=True)
    @click.option("--name", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option("--timezone", "tz_name", default="America/New_York", show_default=True)
    def create_host(email, name, password, tz_name):
        """Create the host account with a default Mon-Fri 09:00-17:00 schedule."""
        from .models import Host, Schedule

        if Host.query.filter_by(email=email.lower().strip()).first():
            click.echo("Host already exists")
            return
        host = Host(email=email.lower().strip(), name=name.strip(), timezone=tz_name)
        host.set_password(password)
        db.session.add(host)
        db.session.flush()
        Schedule.create_default(host.id, tz_name)
        db.session.commit()
        click.echo(f"Created host: {host.email}")

    @app.cli.command("create-event-type")
    @click.option("--title", prompt=True)
    @click.option("--length", type=int, default=30, show_default=True, help="Minutes")
    @click.option("--location", "location_type", default="google_meet", show_default=True)
    @click.option("--price-cents", type=int, default=None, help="Makes the event type paid")
    def create_event_type(title, length, location_type, price_cents):
        """Add an event type for the host."""
        from .errors import BookingError
        from .models import EventType, Host

        try:
            host = Host.single()
            event_type = EventType(
                host_id=host.id,
                title=title.strip(),
                slug=EventType.generate_slug(title),
                length=length,
                location_type=location_type,
                is_paid=price_cents is not None,
                price_cents=price_cents,
            )
            event_type.validate()
        except BookingError as e:
            raise click.ClickException(e.message)
        # Slugs are unique per host
        base, n = event_type.slug, 2
        while EventType.query.filter_by(host_id=host.id, slug=event_type.slug).first():
            event_type.slug = f"{base}-{n}"
            n += 1
        db.session.add(event_type)
        db.session.commit()
        click.echo(f"Created event type {event_type.id}: /book/{event_type.slug}")

    @app.cli.command("send-reminders")
    def send_reminders_command():
        """Send today's reminder emails now."""
        from .reminders import send_due_reminders

        result = send_due_reminders()
        click.echo(
            f"Processed {result.processed}: sent={result.sent} "
            f"skipped={result.skipped} failed={result.failed}"
        )

    return app
