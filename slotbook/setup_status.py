from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from slotbook import db
from slotbook.models.host import Host
from slotbook.notifications.email import is_email_configured
from slotbook.payments.stripe_service import is_stripe_configured


setup_bp = Blueprint("setup", __name__, url_prefix="/api/setup")


def _database_ready() -> bool:
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        db.session.rollback()
        return False
    return True


def config_status() -> dict:
    """Which collaborators this deployment has credentials for."""
    cfg = current_app.config
    status = {
        "database": _database_ready(),
        "googleOAuth": bool(cfg.get("GOOGLE_CLIENT_ID") and cfg.get("GOOGLE_CLIENT_SECRET")),
        "appUrl": bool(cfg.get("APP_URL")),
        "email": is_email_configured(),
        "stripe": is_stripe_configured(),
        "cronSecret": bool(cfg.get("CRON_SECRET")),
    }
    status["hostCount"] = Host.query.count() if status["database"] else 0
    status["ready"] = status["database"] and status["appUrl"] and status["hostCount"] == 1
    return status


@setup_bp.route("/status", methods=["GET"])
def api_setup_status():
    return jsonify(config_status())
