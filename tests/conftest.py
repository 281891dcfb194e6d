from __future__ import annotations

import pytest

from config import TestingConfig
from logistics import create_app
from logistics.extensions import db
from logistics.models import Item, Role, Supplier, User
from logistics.repository import Store
from logistics.security import ActorContext

ADMIN_PASSWORD = "admin-pass"
LOGIST_PASSWORD = "logist-pass"


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ids(app):
    """Seed users, items and suppliers; return their ids."""
    with app.app_context():
        admin = User(username="admin", role=Role.ADMIN.value, full_name="Admin")
        admin.set_password(ADMIN_PASSWORD)
        logist = User(username="logist", role=Role.LOGIST.value, full_name="Logist")
        logist.set_password(LOGIST_PASSWORD)

        wheat = Item(name="Wheat", unit="ton", category="grain")
        flour = Item(name="Flour", unit="kg", category="grain")
        sugar = Item(name="Sugar", unit="ton")
        supplier_x = Supplier(name="Supplier X", contacts="x@example.com")
        supplier_y = Supplier(name="Supplier Y")

        db.session.add_all([admin, logist, wheat, flour, sugar, supplier_x, supplier_y])
        db.session.commit()

        return {
            "admin": admin.id,
            "logist": logist.id,
            "wheat": wheat.id,
            "flour": flour.id,
            "sugar": sugar.id,
            "supplier_x": supplier_x.id,
            "supplier_y": supplier_y.id,
        }


@pytest.fixture()
def store(app, ids):
    with app.app_context():
        yield Store()
        db.session.remove()


@pytest.fixture()
def admin_ctx(ids):
    return ActorContext(user_id=ids["admin"], username="admin", admin_mode=True)


@pytest.fixture()
def user_ctx(ids):
    return ActorContext(user_id=ids["logist"], username="logist", admin_mode=False)


@pytest.fixture()
def client(app, ids):
    """Test client logged in as the admin (admin mode off)."""
    client = app.test_client()
    response = client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture()
def logist_client(app, ids):
    client = app.test_client()
    response = client.post("/auth/login", json={"username": "logist", "password": LOGIST_PASSWORD})
    assert response.status_code == 200
    return client
