"""
Request helpers shared by the blueprints.

- One Store per request (kept on flask.g).
- Request bodies are JSON; form posts are accepted too.
- Command warnings are pushed to the notification sink and returned in the body.
"""

from __future__ import annotations

from typing import Any, Dict

from flask import g, jsonify, request

from ..notifications import WARNING, notify
from ..repository import Store
from ..services.base import CommandResult, parse_bool  # noqa: F401


def get_store() -> Store:
    if "store" not in g:
        g.store = Store()
    return g.store


def get_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def command_response(result: CommandResult, body: Dict[str, Any], status: int = 200):
    """Return `body` plus the command's warnings; warnings are also notified."""
    for message in result.warnings:
        notify(message, WARNING)
    payload = dict(body)
    payload["warnings"] = list(result.warnings)
    if result.audit is not None:
        payload["audit_id"] = result.audit.id
    return jsonify(payload), status
