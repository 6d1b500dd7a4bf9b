"""SQLAlchemy models package for RoleDesk.
Re-exports the shared `db` instance to avoid import loops and provides
convenient names for the model classes.

Usage:
    from models import db, Role, User
"""
from __future__ import annotations

from extensions import db  # shared SQLAlchemy() instance

# Import models only after db exists to avoid circular imports
from .role import Permission, Role, role_permissions, user_roles  # type: ignore F401
from .user import AuditLog, User  # type: ignore F401

__all__ = [
    "db",
    "AuditLog",
    "Permission",
    "Role",
    "User",
    "role_permissions",
    "user_roles",
]
