from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from slotbook.errors import InvalidInput
from slotbook.models.host import Host


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise InvalidInput("Email and password are required")

    host = Host.single()
    if host.email != email or not host.check_password(password):
        return jsonify({"error": "Invalid email or password"}), 401
    login_user(host, remember=True)
    return jsonify({"success": True, "host": _host_dict(host)})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(_host_dict(current_user))


def _host_dict(host: Host) -> dict:
    return {
        "id": host.id,
        "email": host.email,
        "name": host.display_name,
        "timezone": host.timezone,
        "timeFormat": host.time_format,
    }
