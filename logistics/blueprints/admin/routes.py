"""
logistics/blueprints/admin/routes.py

Administration module.

Includes:
- Dashboard counters (any logged-in user)
- Audit trail with filters (admin role)
- User management (admin role; writes need admin mode)
- Export / import / clear of all data (admin role; import and clear need admin mode)

NOTES:
- UI is never trusted. All validations happen server-side.
- Import accepts a JSON body or an uploaded JSON file (`file` field).
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...errors import ValidationError
from ...models import AuditLog
from ...security import admin_mode_required, admin_required, current_context
from ...serializers import audit_json, user_json
from ...services import transfer as transfer_service
from ...services import users as user_service
from ...services.base import parse_optional_int
from ..common import command_response, get_payload, get_store

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

DEFAULT_AUDIT_LIMIT = 500


# -------------------------------------------------------
# DASHBOARD
# -------------------------------------------------------
@admin_bp.route("/dashboard", methods=["GET"])
@login_required
def dashboard():
    store = get_store()
    return jsonify(
        {
            "orders": store.orders.count(),
            "allocations": store.allocations.count(),
            "payments": store.payments.count(),
            "items": store.items.count(),
            "suppliers": store.suppliers.count(),
        }
    )


# -------------------------------------------------------
# AUDIT TRAIL
# -------------------------------------------------------
@admin_bp.route("/audit", methods=["GET"])
@login_required
@admin_required
def audit_log():
    """
    Filters (all optional): action, entity_type, user_id, date (YYYY-MM-DD), limit.
    Newest first.
    """
    query = get_store().audit_logs.query()

    action = (request.args.get("action") or "").strip().upper()
    if action:
        query = query.filter(AuditLog.action == action)

    entity_type = (request.args.get("entity_type") or "").strip()
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)

    user_id = parse_optional_int(request.args.get("user_id"))
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)

    day = (request.args.get("date") or "").strip()
    if day:
        try:
            start = datetime.strptime(day, "%Y-%m-%d")
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD", {"field": "date"}) from None
        query = query.filter(AuditLog.created_at >= start, AuditLog.created_at < start + timedelta(days=1))

    limit = parse_optional_int(request.args.get("limit")) or DEFAULT_AUDIT_LIMIT
    limit = min(max(limit, 1), DEFAULT_AUDIT_LIMIT)
    entries = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify({"entries": [audit_json(e) for e in entries]})


# -------------------------------------------------------
# USERS
# -------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@login_required
@admin_required
def list_users():
    users = get_store().users.list()
    return jsonify({"users": [user_json(u) for u in users]})


@admin_bp.route("/users", methods=["POST"])
@login_required
@admin_required
def create_user():
    result = user_service.create_user(get_store(), current_context(), get_payload())
    return command_response(result, {"user": user_json(result.entity)}, 201)


@admin_bp.route("/users/<int:user_id>", methods=["PUT"])
@login_required
@admin_required
def update_user(user_id: int):
    result = user_service.update_user(get_store(), current_context(), user_id, get_payload())
    return command_response(result, {"user": user_json(result.entity)})


# -------------------------------------------------------
# EXPORT / IMPORT / CLEAR
# -------------------------------------------------------
@admin_bp.route("/export", methods=["GET"])
@login_required
@admin_required
def export_data():
    return jsonify(transfer_service.export_data(get_store()))


@admin_bp.route("/import", methods=["POST"])
@login_required
@admin_required
@admin_mode_required
def import_data():
    upload = request.files.get("file")
    if upload is not None:
        try:
            document = json.load(upload.stream)
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError("Uploaded file is not valid JSON") from None
    else:
        document = request.get_json(silent=True)
        if document is None:
            raise ValidationError("Send the export document as JSON or as a file upload")

    result = transfer_service.import_data(get_store(), current_context(), document)
    return command_response(result, {"cleared": result.extra["cleared"], "imported": result.extra["imported"]})


@admin_bp.route("/clear", methods=["POST"])
@login_required
@admin_required
@admin_mode_required
def clear_data():
    result = transfer_service.clear_all_data(get_store(), current_context())
    return command_response(result, {"cleared": result.extra["cleared"]})
