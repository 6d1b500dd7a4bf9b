"""Permission catalog and cached per-user permission lookups."""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Tuple

from flask import current_app
from sqlalchemy import select

from extensions import cache, db
from models import Permission, Role, User

logger = logging.getLogger(__name__)

PERMISSION_CATALOG: Dict[str, str] = {
    "roles.view": "Ver roles",
    "roles.create": "Crear roles",
    "roles.update": "Actualizar roles",
    "roles.delete": "Eliminar roles",
    "roles.restore": "Restaurar roles",
    "roles.forceDelete": "Eliminar permanentemente roles",
    "roles.export": "Exportar roles",
    "users.view": "Ver usuarios",
    "users.create": "Crear usuario",
    "users.update": "Actualizar usuario",
    "users.delete": "Eliminar usuario",
    "users.restore": "Restaurar usuarios",
    "users.forceDelete": "Eliminar permanentemente usuarios",
    "users.export": "Exportar usuarios",
    "settings.profile.view": "Ver perfil",
    "settings.profile.update": "Actualización de Perfil",
    "settings.password.update": "Actualización de Password",
    "settings.appearance.view": "Ver Apariencia",
}


def permission_catalog() -> List[Tuple[str, str]]:
    return sorted(PERMISSION_CATALOG.items())


def current_guard() -> str:
    return current_app.config.get("AUTH_GUARD", "web")


@cache.memoize(timeout=300)
def permission_names_for_user(user_id: int) -> FrozenSet[str]:
    """Names granted to the user through active, non-deleted roles of the current guard."""
    guard = current_guard()
    stmt = (
        select(Permission.name)
        .join(Permission.roles)
        .join(Role.users)
        .where(
            User.id == user_id,
            Role.is_active.is_(True),
            Role.deleted_at.is_(None),
            Role.guard_name == guard,
            Permission.guard_name == guard,
        )
        .distinct()
    )
    return frozenset(db.session.execute(stmt).scalars().all())


def invalidate_permission_cache() -> None:
    try:
        cache.delete_memoized(permission_names_for_user)
    except Exception:
        logger.warning("Permission cache invalidation failed", exc_info=True)


def available_permissions() -> List[Dict[str, object]]:
    stmt = select(Permission).where(Permission.guard_name == current_guard()).order_by(Permission.name)
    return [
        {"id": permission.id, "name": permission.name, "description": permission.description}
        for permission in db.session.execute(stmt).scalars()
    ]


def sync_permission_catalog(guard: str | None = None) -> int:
    """Insert any catalog permission missing for ``guard``; returns how many were created."""
    guard = guard or current_guard()
    existing = set(
        db.session.execute(select(Permission.name).where(Permission.guard_name == guard)).scalars()
    )
    created = 0
    for name, description in permission_catalog():
        if name in existing:
            continue
        db.session.add(Permission(name=name, guard_name=guard, description=description))
        created += 1
    if created:
        db.session.flush()
        invalidate_permission_cache()
    return created
