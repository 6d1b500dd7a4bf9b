"""Authorization helpers for RoleDesk."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from flask import abort
from flask_login import current_user


class Resource(str, Enum):
    ROLES = "roles"
    USERS = "users"
    SETTINGS = "settings"


class Ability(str, Enum):
    VIEW_ANY = "viewAny"
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"
    FORCE_DELETE = "forceDelete"
    EXPORT = "export"
    SET_ACTIVE = "setActive"


def _crud_permissions(resource: Resource) -> Dict[Tuple[Resource, Ability], str]:
    prefix = resource.value
    return {
        (resource, Ability.VIEW_ANY): f"{prefix}.view",
        (resource, Ability.VIEW): f"{prefix}.view",
        (resource, Ability.CREATE): f"{prefix}.create",
        (resource, Ability.UPDATE): f"{prefix}.update",
        (resource, Ability.DELETE): f"{prefix}.delete",
        (resource, Ability.RESTORE): f"{prefix}.restore",
        (resource, Ability.FORCE_DELETE): f"{prefix}.forceDelete",
        (resource, Ability.EXPORT): f"{prefix}.export",
        (resource, Ability.SET_ACTIVE): f"{prefix}.update",
    }


PERMISSIONS: Dict[Tuple[Resource, Ability], str] = {
    **_crud_permissions(Resource.ROLES),
    **_crud_permissions(Resource.USERS),
    (Resource.SETTINGS, Ability.VIEW): "settings.profile.view",
    (Resource.SETTINGS, Ability.UPDATE): "settings.profile.update",
}

_missing = [
    (resource.value, ability.value)
    for resource in (Resource.ROLES, Resource.USERS)
    for ability in Ability
    if (resource, ability) not in PERMISSIONS
]
if _missing:  # pragma: no cover - import-time guard
    raise RuntimeError(f"Abilities without a permission mapping: {_missing}")


def permission_for(resource: Resource, ability: Ability) -> Optional[str]:
    return PERMISSIONS.get((resource, ability))


class ResourcePolicy:
    """Answers ability checks for one resource against a principal."""

    def __init__(self, resource: Resource):
        self.resource = resource

    def allows(self, user: Any, ability: Ability) -> bool:
        if user is None or not getattr(user, "is_authenticated", False):
            return False
        permission = permission_for(self.resource, ability)
        if permission is None:
            return False
        return bool(user.has_permission(permission))

    def view_any(self, user: Any) -> bool:
        return self.allows(user, Ability.VIEW_ANY)

    def view(self, user: Any) -> bool:
        return self.allows(user, Ability.VIEW)

    def create(self, user: Any) -> bool:
        return self.allows(user, Ability.CREATE)

    def update(self, user: Any) -> bool:
        return self.allows(user, Ability.UPDATE)

    def delete(self, user: Any) -> bool:
        return self.allows(user, Ability.DELETE)

    def restore(self, user: Any) -> bool:
        return self.allows(user, Ability.RESTORE)

    def force_delete(self, user: Any) -> bool:
        return self.allows(user, Ability.FORCE_DELETE)

    def export(self, user: Any) -> bool:
        return self.allows(user, Ability.EXPORT)

    def set_active(self, user: Any) -> bool:
        return self.allows(user, Ability.SET_ACTIVE)


def authorize(ability: Ability, resource: Resource) -> None:
    if not ResourcePolicy(resource).allows(current_user, ability):
        abort(403)


def require_permission(name: str) -> None:
    if not current_user.is_authenticated or not current_user.has_permission(name):
        abort(403)
