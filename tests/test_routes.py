import pytest


def create_order(client, ids, tons=100):
    response = client.post(
        "/orders/",
        json={"name": "Route order", "lines": [{"item_id": ids["wheat"], "quantity": tons, "unit": "ton"}]},
    )
    assert response.status_code == 201
    order = response.get_json()["order"]
    return order, order["layout"]["lines"][0]


def allocate(client, order, line, supplier_id, tons, price=50):
    return client.post(
        f"/distribution/{order['id']}/allocations",
        json={
            "order_line_id": line["id"],
            "supplier_id": supplier_id,
            "quantity": tons,
            "unit": "ton",
            "price_per_ton": price,
            "currency": "USD",
        },
    )


def enable_admin_mode(client):
    response = client.post("/auth/admin-mode", json={"enabled": True})
    assert response.status_code == 200
    assert response.get_json()["admin_mode"] is True


# ---------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------
def test_login_required(app, ids):
    response = app.test_client().get("/orders/")
    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_wrong_password(app, ids):
    response = app.test_client().post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid_credentials"


def test_me_and_logout(client):
    me = client.get("/auth/me").get_json()
    assert me["user"]["username"] == "admin"
    assert "password_hash" not in me["user"]
    assert me["admin_mode"] is False

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_only_admins_enable_admin_mode(logist_client):
    response = logist_client.post("/auth/admin-mode", json={"enabled": True})
    assert response.status_code == 403
    assert response.get_json()["error"] == "authorization_error"


def test_admin_mode_resets_on_login(app, client):
    enable_admin_mode(client)
    client.post("/auth/logout")
    client.post("/auth/login", json={"username": "admin", "password": "admin-pass"})
    assert client.get("/auth/me").get_json()["admin_mode"] is False


def test_csrf_token_endpoint(app):
    response = app.test_client().get("/auth/csrf-token")
    assert response.status_code == 200
    assert response.get_json()["csrf_token"]


# ---------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------
def test_create_and_get_order(client, ids):
    order, line = create_order(client, ids)
    assert order["order_number"] == "ORD-001"
    assert order["status"] == "locked"
    assert order["layout"]["kind"] == "flat"
    assert line["item_name"] == "Wheat"

    detail = client.get(f"/orders/{order['id']}").get_json()["order"]
    assert detail["layout"]["total_weight"] == 100

    listed = client.get("/orders/?status=locked").get_json()["orders"]
    assert [o["id"] for o in listed] == [order["id"]]


def test_container_order_layout(client, ids):
    response = client.post(
        "/orders/",
        json={
            "containers": [
                {"capacity": 26, "lines": [{"item_id": ids["wheat"], "quantity": 21}]},
                {"capacity": 27, "lines": [{"item_id": ids["sugar"], "quantity": 10}]},
            ]
        },
    )
    assert response.status_code == 201
    body = response.get_json()
    assert len(body["warnings"]) == 1

    layout = body["order"]["layout"]
    assert layout["kind"] == "containers"
    assert layout["summary"]["container_count"] == 2
    assert layout["summary"]["count_27t"] == 1
    assert [c["band"] for c in layout["containers"]] == ["yellow", "green"]


def test_container_overload_is_409(client, ids):
    response = client.post(
        "/orders/",
        json={"containers": [{"capacity": 26, "lines": [{"item_id": ids["wheat"], "quantity": 27}]}]},
    )
    assert response.status_code == 409
    assert response.get_json()["error"] == "container_overload"


def test_unknown_order_is_404(client):
    response = client.get("/orders/999")
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_invalid_quantity_is_400(client, ids):
    response = client.post("/orders/", json={"lines": [{"item_id": ids["wheat"], "quantity": "-3"}]})
    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "validation_error"
    assert body["details"]["field"] == "quantity"


def test_line_editing_routes(client, ids):
    order, line = create_order(client, ids)

    added = client.post(f"/orders/{order['id']}/lines", json={"item_id": ids["sugar"], "quantity": 5})
    assert added.status_code == 201

    updated = client.put(f"/orders/{order['id']}/lines/{line['id']}", json={"quantity": 90})
    assert updated.get_json()["line"]["quantity_in_tons"] == 90

    replaced = client.post(
        f"/orders/{order['id']}/lines/{line['id']}/replace",
        json={"lines": [{"item_id": ids["flour"], "quantity": 40}]},
    )
    body = replaced.get_json()
    assert body["action"] == "REPLACE_PARTIAL"
    assert body["remainder_tons"] == 50
    assert len(body["order"]["layout"]["lines"]) == 3


def test_delete_order_needs_admin_mode(client, ids):
    order, _ = create_order(client, ids)

    response = client.delete(f"/orders/{order['id']}")
    assert response.status_code == 403

    enable_admin_mode(client)
    response = client.delete(f"/orders/{order['id']}")
    assert response.status_code == 200
    assert response.get_json()["counts"]["order_lines"] == 1
    assert client.get(f"/orders/{order['id']}").status_code == 404


# ---------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------
def test_distribution_flow(client, ids):
    order, line = create_order(client, ids)

    assert allocate(client, order, line, ids["supplier_x"], 60).status_code == 201
    over = allocate(client, order, line, ids["supplier_y"], 41)
    assert over.status_code == 409
    assert over.get_json()["error"] == "over_allocation"

    view = client.get(f"/distribution/{order['id']}").get_json()
    assert view["editable"] is True
    assert view["lines"][0]["balance"]["remainder_tons"] == 40

    incomplete = client.post(f"/distribution/{order['id']}/complete", json={})
    assert incomplete.status_code == 409
    details = incomplete.get_json()["details"]
    assert details["lines"][0]["remaining_tons"] == 40

    done = client.post(f"/distribution/{order['id']}/complete", json={"override": True})
    assert done.status_code == 200
    body = done.get_json()
    assert body["order"]["status"] == "financial"
    assert body["order"]["is_partially_distributed"] is True
    assert len(body["warnings"]) == 1

    listed = client.get("/distribution/").get_json()["orders"]
    assert listed[0]["total_allocated"] == 60


def test_delete_allocation(client, ids):
    order, line = create_order(client, ids)
    allocation = allocate(client, order, line, ids["supplier_x"], 10).get_json()["allocation"]

    response = client.delete(f"/distribution/{order['id']}/allocations/{allocation['id']}")
    assert response.status_code == 200
    view = client.get(f"/distribution/{order['id']}").get_json()
    assert view["lines"][0]["allocations"] == []


# ---------------------------------------------------------------------
# Finance
# ---------------------------------------------------------------------
def test_finance_flow(client, ids):
    order, line = create_order(client, ids, tons=60)
    allocate(client, order, line, ids["supplier_x"], 60, price=50)
    client.post(f"/distribution/{order['id']}/complete", json={})

    assert [o["id"] for o in client.get("/finance/").get_json()["orders"]] == [order["id"]]

    group = {"supplier_id": ids["supplier_x"], "currency": "USD"}
    paid = client.post(f"/finance/{order['id']}/payments", json=dict(group, amount=1000))
    assert paid.status_code == 201

    preview = client.post(
        f"/finance/{order['id']}/payments/percentage", json=dict(group, percent=50, preview=True)
    )
    assert preview.status_code == 200
    assert preview.get_json()["amount"] == 1000

    view = client.get(f"/finance/{order['id']}").get_json()
    supplier = view["suppliers"][0]
    assert supplier["balance"] == {"total_sum": 3000, "paid": 1000, "remaining": 2000, "status": "partial"}
    assert len(supplier["payments"]) == 1
    assert view["undistributed"] is None
    assert view["totals"]["USD"]["remaining"] == 2000

    recorded = client.post(f"/finance/{order['id']}/payments/percentage", json=dict(group, percent=100))
    assert recorded.status_code == 201
    assert recorded.get_json()["payment"]["amount"] == 2000


# ---------------------------------------------------------------------
# References
# ---------------------------------------------------------------------
def test_reference_crud(client):
    created = client.post("/references/suppliers", json={"name": "Supplier Z", "contacts": "+998"})
    assert created.status_code == 201
    supplier_id = created.get_json()["supplier"]["id"]

    assert client.put(f"/references/suppliers/{supplier_id}", json={"name": "Z"}).status_code == 403

    enable_admin_mode(client)
    updated = client.put(f"/references/suppliers/{supplier_id}", json={"name": "Z"})
    assert updated.get_json()["supplier"]["name"] == "Z"
    assert client.delete(f"/references/suppliers/{supplier_id}").status_code == 200

    items = client.get("/references/items?category=grain").get_json()["items"]
    assert [i["name"] for i in items] == ["Flour", "Wheat"]


# ---------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------
def test_dashboard(client, ids):
    create_order(client, ids)
    counts = client.get("/admin/dashboard").get_json()
    assert counts == {"orders": 1, "allocations": 0, "payments": 0, "items": 3, "suppliers": 2}


def test_audit_filters(client, ids):
    order, line = create_order(client, ids)
    allocate(client, order, line, ids["supplier_x"], 10)

    entries = client.get("/admin/audit?action=create&entity_type=Allocation").get_json()["entries"]
    assert len(entries) == 1
    assert entries[0]["details"]["orderNumber"] == "ORD-001"
    assert entries[0]["username_snapshot"] == "admin"
    assert entries[0]["ip_address"] == "127.0.0.1"

    mine = client.get(f"/admin/audit?user_id={ids['admin']}").get_json()["entries"]
    assert len(mine) == 2
    assert client.get("/admin/audit?date=2001-01-01").get_json()["entries"] == []
    assert client.get("/admin/audit?date=yesterday").status_code == 400


def test_admin_pages_need_admin_role(logist_client):
    assert logist_client.get("/admin/audit").status_code == 403
    assert logist_client.get("/admin/users").status_code == 403
    assert logist_client.get("/admin/export").status_code == 403
    assert logist_client.get("/admin/dashboard").status_code == 200


def test_user_admin_routes(client):
    assert client.post("/admin/users", json={"username": "fin", "password": "pw"}).status_code == 403

    enable_admin_mode(client)
    created = client.post("/admin/users", json={"username": "fin", "password": "pw", "role": "finance"})
    assert created.status_code == 201
    user = created.get_json()["user"]
    assert user["role"] == "finance"
    assert "password_hash" not in user

    users = client.get("/admin/users").get_json()["users"]
    assert {u["username"] for u in users} == {"admin", "logist", "fin"}


@pytest.mark.parametrize("path", ["/admin/import", "/admin/clear"])
def test_bulk_operations_need_admin_mode(client, path):
    response = client.post(path, json={})
    assert response.status_code == 403


def test_export_import_clear_routes(client, ids):
    create_order(client, ids)
    document = client.get("/admin/export").get_json()
    assert len(document["ORDERS"]) == 1

    enable_admin_mode(client)
    imported = client.post("/admin/import", json=document)
    assert imported.status_code == 200
    assert imported.get_json()["imported"]["ORDERS"] == 1

    cleared = client.post("/admin/clear")
    assert cleared.status_code == 200
    assert cleared.get_json()["cleared"]["ORDERS"] == 1
    assert client.get("/admin/dashboard").get_json()["orders"] == 0


def test_export_omits_password_hashes(client, ids):
    document = client.get("/admin/export").get_json()
    assert {u["username"] for u in document["USERS"]} == {"admin", "logist"}
    assert all("password_hash" not in u for u in document["USERS"])


@pytest.mark.parametrize("limit", ["-5", "0"])
def test_audit_limit_is_clamped(client, ids, limit):
    create_order(client, ids)
    create_order(client, ids)
    entries = client.get(f"/admin/audit?limit={limit}").get_json()["entries"]
    assert len(entries) == 1


def test_audit_limit_caps_large_values(client, ids):
    create_order(client, ids)
    entries = client.get("/admin/audit?limit=100000").get_json()["entries"]
    assert len(entries) == 1


@pytest.mark.parametrize("percent", ["NaN", "Infinity"])
def test_non_finite_percentage_is_400(client, ids, percent):
    order, line = create_order(client, ids, tons=60)
    allocate(client, order, line, ids["supplier_x"], 60, price=50)
    group = {"supplier_id": ids["supplier_x"], "currency": "USD", "percent": percent}

    preview = client.post(f"/finance/{order['id']}/payments/percentage", json=dict(group, preview=True))
    assert preview.status_code == 400
    assert preview.get_json()["error"] == "validation_error"

    recorded = client.post(f"/finance/{order['id']}/payments/percentage", json=group)
    assert recorded.status_code == 400


def test_replace_with_nan_quantity_is_400(client, ids):
    order, line = create_order(client, ids)
    response = client.post(
        f"/orders/{order['id']}/lines/{line['id']}/replace",
        json={"lines": [{"item_id": ids["sugar"], "quantity": "nan"}]},
    )
    assert response.status_code == 400
    assert response.get_json()["details"]["line"] == 0


def test_deactivate_user_with_form_string(client, ids):
    enable_admin_mode(client)
    response = client.put(f"/admin/users/{ids['logist']}", data={"is_active": "false"})
    assert response.status_code == 200
    assert response.get_json()["user"]["is_active"] is False
