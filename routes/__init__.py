"""Aggregate blueprint for RoleDesk routes."""

from __future__ import annotations

from .base import views

# Register route modules (import order not critical but keeps sections grouped)
from . import (
    auth,       # noqa: F401
    roles,      # noqa: F401
    settings,   # noqa: F401
    users,      # noqa: F401
)
from .errors import register_error_handlers

__all__ = ["views", "register_error_handlers"]
