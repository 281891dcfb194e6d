"""
Reference data routes: items and suppliers.

Create is open to every logged-in user; edit/delete require admin mode
(enforced by the services).
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...models import Item, Supplier
from ...security import current_context
from ...serializers import item_json, supplier_json
from ...services import references as reference_service
from ..common import command_response, get_payload, get_store

references_bp = Blueprint("references", __name__, url_prefix="/references")


# ---------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------
@references_bp.route("/items", methods=["GET"])
@login_required
def list_items():
    query = get_store().items.query()
    category = (request.args.get("category") or "").strip()
    if category:
        query = query.filter(Item.category == category)
    items = query.order_by(Item.name.asc()).all()
    return jsonify({"items": [item_json(i) for i in items]})


@references_bp.route("/items", methods=["POST"])
@login_required
def create_item():
    result = reference_service.create_item(get_store(), current_context(), get_payload())
    return command_response(result, {"item": item_json(result.entity)}, 201)


@references_bp.route("/items/<int:item_id>", methods=["GET"])
@login_required
def get_item(item_id: int):
    return jsonify({"item": item_json(get_store().items.get_or_raise(item_id))})


@references_bp.route("/items/<int:item_id>", methods=["PUT"])
@login_required
def update_item(item_id: int):
    result = reference_service.update_item(get_store(), current_context(), item_id, get_payload())
    return command_response(result, {"item": item_json(result.entity)})


@references_bp.route("/items/<int:item_id>", methods=["DELETE"])
@login_required
def delete_item(item_id: int):
    result = reference_service.delete_item(get_store(), current_context(), item_id)
    return command_response(result, {"deleted": True})


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
@references_bp.route("/suppliers", methods=["GET"])
@login_required
def list_suppliers():
    suppliers = get_store().suppliers.query().order_by(Supplier.name.asc()).all()
    return jsonify({"suppliers": [supplier_json(s) for s in suppliers]})


@references_bp.route("/suppliers", methods=["POST"])
@login_required
def create_supplier():
    result = reference_service.create_supplier(get_store(), current_context(), get_payload())
    return command_response(result, {"supplier": supplier_json(result.entity)}, 201)


@references_bp.route("/suppliers/<int:supplier_id>", methods=["GET"])
@login_required
def get_supplier(supplier_id: int):
    return jsonify({"supplier": supplier_json(get_store().suppliers.get_or_raise(supplier_id))})


@references_bp.route("/suppliers/<int:supplier_id>", methods=["PUT"])
@login_required
def update_supplier(supplier_id: int):
    result = reference_service.update_supplier(get_store(), current_context(), supplier_id, get_payload())
    return command_response(result, {"supplier": supplier_json(result.entity)})


@references_bp.route("/suppliers/<int:supplier_id>", methods=["DELETE"])
@login_required
def delete_supplier(supplier_id: int):
    result = reference_service.delete_supplier(get_store(), current_context(), supplier_id)
    return command_response(result, {"deleted": True})
