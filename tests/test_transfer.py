import json
from datetime import datetime
from decimal import Decimal

import pytest

from logistics.errors import AuthorizationError, ValidationError
from logistics.services import distribution, finance, orders, transfer, users

COLLECTIONS = {"USERS", "ITEMS", "SUPPLIERS", "ORDERS", "ORDER_LINES", "ALLOCATIONS", "PAYMENTS", "AUDIT_LOGS"}


@pytest.fixture()
def order_with_history(store, user_ctx, ids):
    order = orders.create_order(
        store, user_ctx, {"lines": [{"item_id": ids["wheat"], "quantity": 50, "unit": "ton"}]}
    ).entity
    line = store.order_lines.list_by(order_id=order.id)[0]
    distribution.create_allocation(
        store,
        user_ctx,
        order.id,
        {
            "order_line_id": line.id,
            "supplier_id": ids["supplier_x"],
            "quantity": 50,
            "unit": "ton",
            "price_per_ton": 10,
            "currency": "USD",
        },
    )
    finance.create_payment(
        store,
        user_ctx,
        order.id,
        {"supplier_id": ids["supplier_x"], "currency": "USD", "amount": 100, "date": "2026-03-01"},
    )
    return order


def test_export_contains_every_collection(store, order_with_history):
    document = transfer.export_data(store)
    assert set(document) == COLLECTIONS
    assert len(document["USERS"]) == 2
    assert len(document["ORDERS"]) == 1
    assert len(document["AUDIT_LOGS"]) == 3
    assert document["PAYMENTS"][0]["date"] == "2026-03-01"
    json.dumps(document)


def test_import_round_trip(store, admin_ctx, order_with_history):
    document = json.loads(json.dumps(transfer.export_data(store)))

    result = transfer.import_data(store, admin_ctx, document)

    assert result.extra["imported"]["ORDERS"] == 1
    assert result.extra["cleared"]["ALLOCATIONS"] == 1
    assert store.users.count() == 2
    assert store.orders.first_by(order_number="ORD-001") is not None
    assert store.allocations.first_by().total_sum == Decimal("500.00")
    assert store.payments.first_by().amount == Decimal("100.00")
    assert store.audit_logs.count() == len(document["AUDIT_LOGS"])


def test_import_merges_users_and_remaps_references(store, admin_ctx, ids):
    document = {
        "USERS": [
            {"id": 77, "username": "logist", "role": "logist"},
            {"id": 50, "username": "legacy", "password": "pw", "role": "finance", "full_name": "Legacy"},
        ],
        "ITEMS": [{"id": 7, "name": "Rice", "unit": "ton", "created_at": "2024-01-02T03:04:05"}],
        "ORDERS": [{"id": 3, "order_number": "ORD-010", "status": "locked", "created_by": 77}],
    }

    transfer.import_data(store, admin_ctx, document)

    assert store.users.count() == 3
    assert users.authenticate(store, "legacy", "pw") is not None
    assert store.items.get(7).created_at == datetime(2024, 1, 2, 3, 4, 5)
    assert store.items.get(ids["wheat"]) is None
    assert store.orders.get(3).created_by == ids["logist"]


def test_import_without_credentials_gets_unusable_password(store, admin_ctx, ids):
    document = transfer.export_data(store)
    assert all("password_hash" not in row for row in document["USERS"])
    document["USERS"].append({"id": 90, "username": "newcomer", "role": "logist"})

    transfer.import_data(store, admin_ctx, document)

    newcomer = store.users.first_by(username="newcomer")
    assert newcomer.password_hash
    assert users.authenticate(store, "newcomer", "newcomer") is None
    assert users.authenticate(store, "admin", "admin-pass") is not None


def test_import_requires_admin_mode(store, user_ctx):
    with pytest.raises(AuthorizationError):
        transfer.import_data(store, user_ctx, {"ITEMS": []})


@pytest.mark.parametrize("document", [[], {"WIDGETS": []}, {"ITEMS": {"id": 1}}])
def test_import_rejects_malformed_documents(store, admin_ctx, ids, document):
    with pytest.raises(ValidationError):
        transfer.import_data(store, admin_ctx, document)
    assert store.items.get(ids["wheat"]) is not None


def test_clear_keeps_users(store, admin_ctx, order_with_history):
    result = transfer.clear_all_data(store, admin_ctx)
    assert result.entity is None
    assert result.extra["cleared"]["ORDERS"] == 1
    assert store.orders.count() == 0
    assert store.items.count() == 0
    assert store.audit_logs.count() == 0
    assert store.users.count() == 2


def test_clear_reseeds_default_admin(store, admin_ctx):
    store.users.delete_all()
    store.commit()

    result = transfer.clear_all_data(store, admin_ctx)

    assert result.entity.username == "admin"
    assert users.authenticate(store, "admin", "admin") is not None


def test_cli_export_and_import(app, ids, tmp_path):
    runner = app.test_cli_runner()
    path = tmp_path / "export.json"

    result = runner.invoke(args=["seed-admin"])
    assert "nothing seeded" in result.output

    result = runner.invoke(args=["export-data", str(path)])
    assert result.exit_code == 0
    document = json.loads(path.read_text(encoding="utf-8"))
    assert {row["name"] for row in document["ITEMS"]} == {"Wheat", "Flour", "Sugar"}

    result = runner.invoke(args=["import-data", str(path)])
    assert result.exit_code == 0
    assert "ITEMS=3" in result.output
