"""
JSON views of models and core results.

Column snapshots come from audit.serialize_model (so money is a float and
dates are ISO strings); a few relationships are flattened into *_name keys.
"""

from __future__ import annotations

from typing import Any, Dict, List

from .audit import audit_details, json_safe, serialize_model
from .core import packing
from .core.units import TONS_IN_CONTAINER_DEFAULT, to_containers


def user_json(user) -> Dict[str, Any]:
    data = serialize_model(user, exclude=("password_hash",))
    data["is_admin"] = user.is_admin
    return data


def item_json(item) -> Dict[str, Any]:
    return serialize_model(item)


def supplier_json(supplier) -> Dict[str, Any]:
    return serialize_model(supplier)


def line_json(line) -> Dict[str, Any]:
    data = serialize_model(line)
    data["item_name"] = line.item.name if line.item else None
    data["quantity_in_containers"] = to_containers(
        line.quantity_in_tons, line.container_size or TONS_IN_CONTAINER_DEFAULT
    )
    return data


def allocation_json(allocation) -> Dict[str, Any]:
    data = serialize_model(allocation)
    data["supplier_name"] = allocation.supplier.name if allocation.supplier else None
    data["item_name"] = allocation.item.name if allocation.item else None
    return data


def payment_json(payment) -> Dict[str, Any]:
    data = serialize_model(payment)
    data["supplier_name"] = payment.supplier.name if payment.supplier else None
    return data


def audit_json(entry) -> Dict[str, Any]:
    data = serialize_model(entry)
    data["details"] = audit_details(entry)
    return data


def order_json(order) -> Dict[str, Any]:
    data = serialize_model(order)
    data["created_by_username"] = order.creator.username if order.creator else None
    return data


def layout_json(layout: packing.OrderLayout) -> Dict[str, Any]:
    """Tagged union -> {"kind": "flat"|"containers", ...}."""
    if isinstance(layout, packing.ContainerPackedOrder):
        return {
            "kind": layout.kind,
            "containers": [c.to_dict(serialize_item=line_json) for c in layout.containers],
            "summary": layout.summary.to_dict(),
        }
    return {
        "kind": layout.kind,
        "lines": [line_json(line) for line in layout.lines],
        "total_weight": layout.total_weight,
    }


def balance_rows_json(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Rows of services.distribution.line_balances()."""
    out = []
    for row in rows:
        data = line_json(row["line"])
        data["balance"] = row["balance"].to_dict()
        data["allocations"] = [allocation_json(a) for a in row["allocations"]]
        out.append(data)
    return out


def supplier_ledger_json(entry) -> Dict[str, Any]:
    """services.finance.SupplierLedger -> JSON."""
    allocations = entry.group.allocations
    supplier = allocations[0].supplier if allocations else None
    return {
        "supplier_id": entry.group.supplier_id,
        "supplier_name": supplier.name if supplier else None,
        "currency": entry.group.currency,
        "allocations": [allocation_json(a) for a in allocations],
        "balance": {k: json_safe(v) for k, v in entry.balance.to_dict().items()},
        "payments": [payment_json(p) for p in entry.payments],
    }
