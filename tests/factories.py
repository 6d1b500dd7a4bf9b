"""Factory helpers for quickly seeding the test database."""
from __future__ import annotations

import itertools
from typing import Iterable, Optional, Sequence

from sqlalchemy import select

from extensions import db
from models import Permission, Role, User

INERTIA = {"X-Inertia": "true"}
JSON = {"Accept": "application/json"}

_role_counter = itertools.count(1)
_user_counter = itertools.count(1)


def permissions_named(names: Iterable[str], guard_name: str = "web") -> list[Permission]:
    names = list(names)
    if not names:
        return []
    stmt = select(Permission).where(Permission.name.in_(names), Permission.guard_name == guard_name)
    return list(db.session.execute(stmt).scalars())


def create_role(
    *,
    name: Optional[str] = None,
    guard_name: str = "web",
    is_active: bool = True,
    permissions: Sequence[str] = (),
    users: Sequence[User] = (),
) -> Role:
    role = Role(
        name=name or f"Rol {_next_value(_role_counter)}",
        guard_name=guard_name,
        is_active=is_active,
    )
    role.permissions = permissions_named(permissions, guard_name)
    role.users = list(users)
    db.session.add(role)
    db.session.flush()
    return role


def create_user(
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
    password: str = "password123",
    is_active: bool = True,
    roles: Sequence[Role] = (),
) -> User:
    number = _next_value(_user_counter)
    user = User(
        name=name or f"Usuario {number}",
        email=(email or f"user{number}@example.com").lower().strip(),
        is_active=is_active,
    )
    user.set_password(password)
    user.roles = list(roles)
    db.session.add(user)
    db.session.flush()
    return user


def _next_value(counter: itertools.count) -> int:
    return next(counter)


__all__ = ["INERTIA", "JSON", "create_role", "create_user", "permissions_named"]
