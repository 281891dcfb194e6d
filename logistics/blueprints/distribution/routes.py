"""
logistics/blueprints/distribution/routes.py

Distribution screen: split order lines across suppliers.

- GET  /distribution/                        orders in locked/distributed/financial/completed
- GET  /distribution/<order_id>              per-line balances + allocations
- POST /distribution/<order_id>/allocations
- DELETE /distribution/<order_id>/allocations/<allocation_id>
- POST /distribution/<order_id>/complete     {"override": bool}
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from ...core import lifecycle, payments
from ...models import Order
from ...security import current_context
from ...serializers import allocation_json, balance_rows_json, layout_json, order_json
from ...services import distribution as distribution_service
from ...services.orders import order_layout
from ..common import command_response, get_payload, get_store, parse_bool

distribution_bp = Blueprint("distribution", __name__, url_prefix="/distribution")


@distribution_bp.route("/", methods=["GET"])
@login_required
def list_orders():
    store = get_store()
    statuses = [s.value for s in lifecycle.DISTRIBUTION_STATUSES]
    orders = (
        store.orders.query()
        .filter(Order.status.in_(statuses))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )

    rows = []
    for order in orders:
        summary = payments.undistributed_summary(
            store.order_lines.list_by(order_id=order.id),
            store.allocations.list_by(order_id=order.id),
        )
        data = order_json(order)
        data["total_ordered"] = summary.total_ordered
        data["total_allocated"] = summary.total_allocated
        data["total_remaining"] = summary.total_remaining
        rows.append(data)
    return jsonify({"orders": rows})


@distribution_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def order_distribution(order_id: int):
    store = get_store()
    order = store.orders.get_or_raise(order_id)
    summary = payments.undistributed_summary(
        store.order_lines.list_by(order_id=order.id),
        store.allocations.list_by(order_id=order.id),
    )
    return jsonify(
        {
            "order": order_json(order),
            "editable": lifecycle.lines_mutable(order.status),
            "lines": balance_rows_json(distribution_service.line_balances(store, order)),
            "layout": layout_json(order_layout(store, order)),
            "undistributed": summary.to_dict(),
        }
    )


@distribution_bp.route("/<int:order_id>/allocations", methods=["POST"])
@login_required
def create_allocation(order_id: int):
    result = distribution_service.create_allocation(get_store(), current_context(), order_id, get_payload())
    return command_response(result, {"allocation": allocation_json(result.entity)}, 201)


@distribution_bp.route("/<int:order_id>/allocations/<int:allocation_id>", methods=["DELETE"])
@login_required
def delete_allocation(order_id: int, allocation_id: int):
    result = distribution_service.delete_allocation(get_store(), current_context(), order_id, allocation_id)
    return command_response(result, {"deleted": True})


@distribution_bp.route("/<int:order_id>/complete", methods=["POST"])
@login_required
def complete(order_id: int):
    override = parse_bool(get_payload().get("override"))
    result = distribution_service.complete_distribution(
        get_store(), current_context(), order_id, override=override
    )
    return command_response(
        result,
        {"order": order_json(result.entity), "undistributed": result.extra["undistributed"].to_dict()},
    )
