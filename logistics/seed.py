"""
logistics/seed.py

Seed the default administrator.

Rules:
- Safe to run multiple times (idempotent): nothing happens when any user exists.
- Credentials come from DEFAULT_ADMIN_USERNAME / DEFAULT_ADMIN_PASSWORD.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import current_app

from .models import Role, User

logger = logging.getLogger(__name__)


def seed_default_admin(store, commit: bool = True) -> Optional[User]:
    """
    Create the default admin account when the users table is empty.

    Returns the created user, or None when users already exist.
    """
    if store.users.count():
        return None

    username = current_app.config.get("DEFAULT_ADMIN_USERNAME", "admin")
    user = User(
        username=username,
        role=Role.ADMIN.value,
        full_name="Administrator",
        is_active=True,
    )
    user.set_password(current_app.config.get("DEFAULT_ADMIN_PASSWORD", "admin"))
    store.users.add(user)

    if commit:
        store.commit()
    logger.warning("Seeded default admin user %r; change its password", username)
    return user
