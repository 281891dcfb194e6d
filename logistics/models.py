"""
Logistics Order Management – Domain Models

Reference data:
- Item (purchasable commodity, default unit)
- Supplier (counterparty)

Orders:
- Order (ORD-### number, lifecycle status)
- OrderLine (requested quantity of one Item, normalized to tons)
- Allocation (part of a line committed to a Supplier at a price)
- PaymentOperation (append-only money movement per supplier + currency)

Support:
- User (login account, salted password hash)
- AuditLog (one entry per mutation)

IMPORTANT:
- quantity_in_tons is the canonical quantity used by every calculation.
  It is computed once from quantity/unit/container_size when a row is written.
- Money columns are Numeric(18, 2) and always written through core.payments.money().
- Cascades are NOT declared on relationships: order deletion is an explicit,
  ordered sequence executed by services.orders.DeletionSaga.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .core.lifecycle import OrderStatus
from .core.units import Unit
from .extensions import db


class Role(str, Enum):
    ADMIN = "admin"
    LOGIST = "logist"
    FINANCE = "finance"


class Currency(str, Enum):
    USD = "USD"
    UZS = "UZS"


class PaymentType(str, Enum):
    PREPAYMENT = "PREPAYMENT"
    PAYOFF = "PAYOFF"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REPLACE = "REPLACE"
    REPLACE_MULTI = "REPLACE_MULTI"
    REPLACE_PARTIAL = "REPLACE_PARTIAL"
    ADD = "ADD"


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=Role.LOGIST.value, index=True)
    full_name = db.Column(db.String(255), nullable=False, default="")
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def __repr__(self):
        return f"<User {self.username}>"


# ---------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------
class Item(db.Model):
    __tablename__ = "items"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    unit = db.Column(db.String(20), nullable=False, default=Unit.TON.value)
    category = db.Column(db.String(120), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Item {self.name}>"


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    contacts = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Supplier {self.name}>"


# ---------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------
class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)

    order_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.LOCKED.value, index=True)

    # Set when distribution was completed with an explicit override.
    is_partially_distributed = db.Column(db.Boolean, default=False, nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = db.relationship("User", foreign_keys=[created_by])

    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Order {self.order_number}>"


class OrderLine(db.Model):
    __tablename__ = "order_lines"

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    # As entered
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(20), nullable=False, default=Unit.TON.value)

    # Canonical
    quantity_in_tons = db.Column(db.Float, nullable=False)

    # Container packing (absent on legacy flat orders)
    container_size = db.Column(db.Float, nullable=True)
    container_index = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship("Order", back_populates="lines")
    item = db.relationship("Item")

    def __repr__(self):
        return f"<OrderLine {self.id} {self.quantity_in_tons}t>"


class Allocation(db.Model):
    __tablename__ = "allocations"

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_line_id = db.Column(
        db.Integer,
        db.ForeignKey("order_lines.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(20), nullable=False, default=Unit.TON.value)
    quantity_in_tons = db.Column(db.Float, nullable=False)

    price_per_ton = db.Column(db.Numeric(18, 2), nullable=False)
    total_sum = db.Column(db.Numeric(18, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default=Currency.USD.value, index=True)

    # Only when the quantity was entered in containers
    container_size = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    supplier = db.relationship("Supplier")
    item = db.relationship("Item")


class PaymentOperation(db.Model):
    """Append-only: there is no update or reversal, only creation."""

    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)

    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    type = db.Column(db.String(20), nullable=False, default=PaymentType.PREPAYMENT.value)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default=Currency.USD.value, index=True)

    date = db.Column(db.Date, nullable=False)
    comment = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    supplier = db.relationship("Supplier")


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Append-only audit trail."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    details = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
