"""
Authentication Routes

Provides:
- POST /auth/login
- POST /auth/logout
- GET  /auth/me
- POST /auth/admin-mode   (admins only)
- GET  /auth/csrf-token

Rules:
- Only active users may log in; credentials validated via password hash.
- Admin mode is reset on every login and logout.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...errors import ValidationError
from ...notifications import INFO, SUCCESS, notify
from ...security import admin_mode_enabled, reset_admin_mode, set_admin_mode
from ...serializers import user_json
from ...services.users import authenticate
from ..common import get_payload, get_store, parse_bool

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _session_json():
    return {"user": user_json(current_user._get_current_object()), "admin_mode": admin_mode_enabled()}


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login():
    data = get_payload()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        raise ValidationError("Username and password are required")

    user = authenticate(get_store(), username, password)
    if user is None:
        return jsonify(
            {"error": "invalid_credentials", "message": "Wrong username or password", "details": {}}
        ), 401

    login_user(user)
    reset_admin_mode()
    notify(f"Welcome, {user.full_name or user.username}!", SUCCESS)
    return jsonify(_session_json())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    reset_admin_mode()
    logout_user()
    notify("Logged out.", INFO)
    return jsonify({"logged_out": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(_session_json())


@auth_bp.route("/admin-mode", methods=["POST"])
@login_required
def admin_mode():
    """Body: {"enabled": true|false}."""
    enabled = set_admin_mode(parse_bool(get_payload().get("enabled")))
    return jsonify({"admin_mode": enabled})
