"""
logistics/blueprints/orders/routes.py

Orders and order lines.

Includes:
- order list (optional ?status= filter) and detail with container layout
- create order (flat lines or containers)
- add / edit / replace / delete lines
- delete order (admin mode, cascade)

IMPORTANT:
- Routes only translate HTTP <-> services. Every rule lives in services/ and core/.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...core import lifecycle
from ...models import Order
from ...security import current_context
from ...serializers import layout_json, line_json, order_json
from ...services import orders as order_service
from ..common import command_response, get_payload, get_store

orders_bp = Blueprint("orders", __name__, url_prefix="/orders")


def _order_detail(store, order: Order) -> dict:
    data = order_json(order)
    data["layout"] = layout_json(order_service.order_layout(store, order))
    return data


# ---------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------
@orders_bp.route("/", methods=["GET"])
@login_required
def list_orders():
    store = get_store()
    query = store.orders.query()

    status = (request.args.get("status") or "").strip()
    if status:
        query = query.filter(Order.status == lifecycle.parse_status(status).value)

    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return jsonify({"orders": [order_json(o) for o in orders]})


@orders_bp.route("/", methods=["POST"])
@login_required
def create_order():
    store = get_store()
    result = order_service.create_order(store, current_context(), get_payload())
    return command_response(result, {"order": _order_detail(store, result.entity)}, 201)


@orders_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def get_order(order_id: int):
    store = get_store()
    order = store.orders.get_or_raise(order_id)
    return jsonify({"order": _order_detail(store, order)})


@orders_bp.route("/<int:order_id>", methods=["DELETE"])
@login_required
def delete_order(order_id: int):
    result = order_service.delete_order(get_store(), current_context(), order_id)
    return command_response(result, {"deleted": True, "counts": result.extra["deleted"]})


# ---------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------
@orders_bp.route("/<int:order_id>/lines", methods=["POST"])
@login_required
def add_line(order_id: int):
    result = order_service.add_line(get_store(), current_context(), order_id, get_payload())
    return command_response(result, {"line": line_json(result.entity)}, 201)


@orders_bp.route("/<int:order_id>/lines/<int:line_id>", methods=["PUT"])
@login_required
def update_line(order_id: int, line_id: int):
    result = order_service.update_line(get_store(), current_context(), order_id, line_id, get_payload())
    return command_response(result, {"line": line_json(result.entity)})


@orders_bp.route("/<int:order_id>/lines/<int:line_id>", methods=["DELETE"])
@login_required
def delete_line(order_id: int, line_id: int):
    result = order_service.delete_line(get_store(), current_context(), order_id, line_id)
    return command_response(result, {"deleted": True})


@orders_bp.route("/<int:order_id>/lines/<int:line_id>/replace", methods=["POST"])
@login_required
def replace_line(order_id: int, line_id: int):
    """Body: {"lines": [{"item_id", "quantity", "unit"}, ...]}."""
    store = get_store()
    result = order_service.replace_line(
        store, current_context(), order_id, line_id, get_payload().get("lines") or []
    )
    plan = result.extra["plan"]
    body = {
        "action": plan.action,
        "original_deleted": result.extra["original_deleted"],
        "remainder_tons": plan.remainder_tons,
        "new_lines": [line_json(line) for line in result.extra["new_lines"]],
        "order": _order_detail(store, store.orders.get_or_raise(order_id)),
    }
    return command_response(result, body)
