"""
logistics/blueprints/finance/routes.py

Finance screen: balances per (supplier, currency) and payments.

NOTE:
- Only orders in financial/completed status are listed, but payments are
  recorded against whichever order holds the allocations.
- POST .../payments/percentage with {"preview": true} only computes the amount.
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import login_required

from ...audit import json_safe
from ...core import lifecycle, payments
from ...models import Order
from ...security import current_context
from ...serializers import order_json, payment_json, supplier_ledger_json
from ...services import finance as finance_service
from ..common import command_response, get_payload, get_store, parse_bool

finance_bp = Blueprint("finance", __name__, url_prefix="/finance")


def _totals_json(ledgers) -> dict:
    return {
        currency: {k: json_safe(v) for k, v in values.items()}
        for currency, values in finance_service.order_totals(ledgers).items()
    }


@finance_bp.route("/", methods=["GET"])
@login_required
def list_orders():
    store = get_store()
    statuses = [s.value for s in lifecycle.FINANCE_STATUSES]
    orders = (
        store.orders.query()
        .filter(Order.status.in_(statuses))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )

    rows = []
    for order in orders:
        data = order_json(order)
        data["totals"] = _totals_json(finance_service.supplier_ledgers(store, order))
        rows.append(data)
    return jsonify({"orders": rows})


@finance_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def order_finance(order_id: int):
    store = get_store()
    order = store.orders.get_or_raise(order_id)
    ledgers = finance_service.supplier_ledgers(store, order)
    summary = payments.undistributed_summary(
        store.order_lines.list_by(order_id=order.id),
        store.allocations.list_by(order_id=order.id),
    )
    return jsonify(
        {
            "order": order_json(order),
            "suppliers": [supplier_ledger_json(entry) for entry in ledgers],
            "totals": _totals_json(ledgers),
            "undistributed": summary.to_dict() if summary.has_undistributed else None,
            "quick_percentages": list(payments.QUICK_PERCENTAGES),
        }
    )


@finance_bp.route("/<int:order_id>/payments", methods=["POST"])
@login_required
def create_payment(order_id: int):
    result = finance_service.create_payment(get_store(), current_context(), order_id, get_payload())
    return command_response(result, {"payment": payment_json(result.entity)}, 201)


@finance_bp.route("/<int:order_id>/payments/percentage", methods=["POST"])
@login_required
def create_percentage_payment(order_id: int):
    data = get_payload()
    store = get_store()

    if parse_bool(data.get("preview")):
        preview = finance_service.preview_percentage(store, order_id, data)
        return jsonify(
            {
                "amount": json_safe(preview["amount"]),
                "percent": json_safe(preview["percent"]),
                "base": preview["base"],
                "balance": {k: json_safe(v) for k, v in preview["balance"].to_dict().items()},
            }
        )

    result = finance_service.create_percentage_payment(store, current_context(), order_id, data)
    return command_response(result, {"payment": payment_json(result.entity)}, 201)
