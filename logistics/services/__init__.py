"""
Service commands.

Each command takes `(store, ctx, ...)`, runs in a single transaction and
returns a CommandResult(entity, audit). See services/base.py.
"""

from .base import CommandResult, command  # noqa: F401
