"""
logistics/repository.py

Persistence gateway.

One Repository per entity type (CRUD + list-by-foreign-key), bundled in a
Store that service functions receive as an argument. Services never import
db.session directly.

IMPORTANT:
- add()/delete() flush immediately so ids exist for audit entries.
- Transaction boundaries (commit/rollback) belong to the command decorator
  in services/base.py, never to the repositories.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, List, Optional, Type, TypeVar

from .errors import NotFoundError
from .extensions import db
from .models import (
    Allocation,
    AuditLog,
    Item,
    Order,
    OrderLine,
    PaymentOperation,
    Supplier,
    User,
)

T = TypeVar("T")


class Repository(Generic[T]):
    """CRUD + query-by-foreign-key for one model."""

    def __init__(self, model: Type[T], session_factory: Callable[[], Any]):
        self.model = model
        self._session_factory = session_factory

    @property
    def session(self):
        return self._session_factory()

    def get(self, entity_id) -> Optional[T]:
        if entity_id is None:
            return None
        return self.session.get(self.model, entity_id)

    def get_or_raise(self, entity_id) -> T:
        entity = self.get(entity_id)
        if entity is None:
            raise NotFoundError(
                f"{self.model.__name__} {entity_id} not found",
                {"entity_type": self.model.__name__, "entity_id": entity_id},
            )
        return entity

    def query(self):
        return self.session.query(self.model)

    def list(self) -> List[T]:
        return self.query().order_by(self.model.id.asc()).all()

    def list_by(self, **filters) -> List[T]:
        return self.query().filter_by(**filters).order_by(self.model.id.asc()).all()

    def first_by(self, **filters) -> Optional[T]:
        return self.query().filter_by(**filters).first()

    def count(self, **filters) -> int:
        return self.query().filter_by(**filters).count()

    def add(self, entity: T) -> T:
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity: T) -> None:
        self.session.delete(entity)
        self.session.flush()

    def delete_by(self, **filters) -> int:
        """Delete every matching row one by one; returns the number deleted."""
        rows = self.list_by(**filters)
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    def delete_all(self) -> int:
        return self.delete_by()


class Store:
    """All repositories over one session."""

    def __init__(self, session_factory: Callable[[], Any] | None = None):
        self._session_factory = session_factory or (lambda: db.session)

        self.users = Repository(User, self._session_factory)
        self.items = Repository(Item, self._session_factory)
        self.suppliers = Repository(Supplier, self._session_factory)
        self.orders = Repository(Order, self._session_factory)
        self.order_lines = Repository(OrderLine, self._session_factory)
        self.allocations = Repository(Allocation, self._session_factory)
        self.payments = Repository(PaymentOperation, self._session_factory)
        self.audit_logs = Repository(AuditLog, self._session_factory)

    @property
    def session(self):
        return self._session_factory()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
