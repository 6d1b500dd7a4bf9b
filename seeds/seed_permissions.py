from __future__ import annotations

import random

from flask import current_app
from sqlalchemy import func, select

from extensions import db
from models import Permission, Role, User
from services.permissions import current_guard, invalidate_permission_cache, sync_permission_catalog

ADMIN_ROLE = "admin"


def seed_permissions() -> Role:
    """Create missing catalog permissions and an `admin` role holding all of them."""
    guard = current_guard()
    sync_permission_catalog(guard)
    role = db.session.execute(
        select(Role).where(Role.name == ADMIN_ROLE, Role.guard_name == guard)
    ).scalars().first()
    if role is None:
        role = Role(name=ADMIN_ROLE, guard_name=guard, is_active=True)
        db.session.add(role)
    role.permissions = list(
        db.session.execute(select(Permission).where(Permission.guard_name == guard)).scalars()
    )
    db.session.commit()
    invalidate_permission_cache()
    return role


def seed_admin_user(email: str | None = None, password: str | None = None, name: str = "Administrador") -> User:
    email = (email or current_app.config.get("ADMIN_EMAIL") or "").strip().lower()
    password = password or current_app.config.get("ADMIN_PASSWORD")
    if not email or not password:
        raise ValueError("ADMIN_EMAIL and ADMIN_PASSWORD are required to seed the admin user.")
    admin_role = seed_permissions()
    user = db.session.execute(select(User).where(func.lower(User.email) == email)).scalars().first()
    if user is None:
        user = User(name=name, email=email)
        db.session.add(user)
    user.set_password(password)
    user.is_active = True
    if admin_role not in user.roles:
        user.roles.append(admin_role)
    db.session.commit()
    invalidate_permission_cache()
    return user


def seed_demo_roles(count: int = 20, *, seed: int | None = None) -> int:
    """Add `count` demo roles with random permission subsets; returns how many were created."""
    rng = random.Random(seed)
    guard = current_guard()
    permissions = list(db.session.execute(select(Permission).where(Permission.guard_name == guard)).scalars())
    existing = set(db.session.execute(select(Role.name).where(Role.guard_name == guard)).scalars())
    created = 0
    index = 1
    while created < count:
        name = f"Rol demo {index}"
        index += 1
        if name in existing:
            continue
        role = Role(name=name, guard_name=guard, is_active=rng.random() > 0.2)
        if permissions:
            role.permissions = rng.sample(permissions, rng.randint(0, len(permissions)))
        db.session.add(role)
        created += 1
    db.session.commit()
    invalidate_permission_cache()
    return created
