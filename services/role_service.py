"""Role management: row shaping, safe deletion and activation rules."""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from flask import current_app

from models import Role
from repositories import RoleRepository

from .base_service import BaseService
from .errors import DomainActionError
from .permissions import available_permissions, current_guard, invalidate_permission_cache

logger = logging.getLogger(__name__)


class RoleService(BaseService[Role]):
    resource_name = "roles"
    export_relations = ("permissions",)
    export_counts = ("users",)

    def __init__(self, repository: Optional[RoleRepository] = None):
        super().__init__(repository or RoleRepository())

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def protected_names(self) -> Set[str]:
        return {name.lower() for name in current_app.config.get("ROLES_PROTECTED", [])}

    @property
    def block_if_has_permissions(self) -> bool:
        return bool(current_app.config.get("ROLES_DELETION_BLOCK_IF_HAS_PERMISSIONS", False))

    @property
    def require_inactive(self) -> bool:
        return bool(current_app.config.get("ROLES_DELETION_REQUIRE_INACTIVE", False))

    @property
    def critical_permissions(self) -> List[str]:
        return list(current_app.config.get("ROLES_CRITICAL_PERMISSIONS", []))

    # ------------------------------------------------------------------
    # Row shaping
    # ------------------------------------------------------------------
    def to_row(self, role: Role) -> Dict[str, Any]:
        loaded = "permissions" in role.__dict__
        permissions = [p.name for p in role.permissions] if loaded else []
        users_count = getattr(role, "users_count", None)
        return {
            "id": role.id,
            "uuid": role.uuid,
            "name": role.name,
            "guard_name": role.guard_name,
            "is_active": bool(role.is_active),
            "permissions": permissions,
            "permissions_count": getattr(role, "permissions_count", len(permissions)),
            "users_count": users_count if users_count is not None else 0,
            "created_at": role.created_at,
            "deleted_at": role.deleted_at,
        }

    def to_item(self, role: Role) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "id": role.id,
            "uuid": role.uuid,
            "name": role.name,
            "guard_name": role.guard_name,
            "is_active": bool(role.is_active),
            "created_at": role.created_at,
            "updated_at": role.updated_at,
            "deleted_at": role.deleted_at,
        }
        if "permissions" in role.__dict__:
            item["permissions"] = [
                {"id": p.id, "name": p.name, "description": p.description} for p in role.permissions
            ]
        if "users" in role.__dict__:
            item["users"] = [{"id": u.id, "name": u.name, "email": u.email} for u in role.users]
        for rel in ("permissions", "users"):
            count = getattr(role, f"{rel}_count", None)
            if count is not None:
                item[f"{rel}_count"] = count
        return item

    def default_export_columns(self) -> "OrderedDict[str, str]":
        return OrderedDict(
            [
                ("id", "#"),
                ("name", "Nombre"),
                ("guard_name", "Guard"),
                ("permissions", "Permisos"),
                ("users_count", "Usuarios"),
                ("is_active", "Estado"),
                ("created_at", "Creado"),
            ]
        )

    def index_extras(self) -> Dict[str, Any]:
        return {"stats": self.repo.stats(), "availablePermissions": available_permissions()}

    # ------------------------------------------------------------------
    # Write hooks
    # ------------------------------------------------------------------
    def _sync_permissions(self, role: Role, attributes: Mapping[str, Any]) -> None:
        if "permissions_ids" not in attributes:
            return
        ids = [int(value) for value in attributes.get("permissions_ids") or []]
        role.permissions = self.repo.permissions_by_ids(ids, role.guard_name)
        self.repo.session.flush()

    def after_create(self, role: Role, attributes: Mapping[str, Any]) -> None:
        self._sync_permissions(role, attributes)

    def after_update(self, role: Role, attributes: Mapping[str, Any]) -> None:
        self._sync_permissions(role, attributes)

    def after_write(self) -> None:
        invalidate_permission_cache()

    def create(self, attributes: Mapping[str, Any]) -> Role:
        data = dict(attributes)
        data.setdefault("guard_name", current_guard())
        return super().create(data)

    # ------------------------------------------------------------------
    # Deletion and activation rules
    # ------------------------------------------------------------------
    def _grants_critical(self, role: Role) -> bool:
        critical = set(self.critical_permissions)
        return bool(critical) and critical.issubset(set(role.permission_names))

    def _critical_holders(self, guard_name: str) -> Set[int]:
        return set(self.repo.active_role_ids_granting(self.critical_permissions, guard_name))

    def deletion_block_reason(self, role: Role, critical_holders: Optional[Set[int]] = None) -> Optional[str]:
        if role.name.lower() in self.protected_names:
            return f"El rol '{role.name}' está protegido y no puede eliminarse."
        if self.block_if_has_permissions and role.permissions:
            return f"No se puede eliminar el rol '{role.name}' porque tiene permisos asignados."
        if self.require_inactive and role.is_active:
            return f"El rol '{role.name}' debe estar inactivo antes de eliminarse."
        if role.is_active and self._grants_critical(role):
            holders = critical_holders if critical_holders is not None else self._critical_holders(role.guard_name)
            if holders <= {role.id}:
                return f"No se puede eliminar el rol '{role.name}': es el último rol activo con permisos críticos."
        return None

    def deactivation_block_reason(self, role: Role, critical_holders: Optional[Set[int]] = None) -> Optional[str]:
        if role.is_active and self._grants_critical(role):
            holders = critical_holders if critical_holders is not None else self._critical_holders(role.guard_name)
            if holders <= {role.id}:
                return f"No se puede desactivar el rol '{role.name}': es el último rol activo con permisos críticos."
        return None

    def delete_safely(self, target: Any) -> Role:
        def _delete() -> Role:
            role = self.repo.resolve(target)
            if role.is_trashed:
                raise DomainActionError(f"El rol '{role.name}' ya fue eliminado.")
            reason = self.deletion_block_reason(role)
            if reason:
                raise DomainActionError(reason)
            self.repo.delete(role)
            self.after_write()
            self.audit("deleted", {"id": role.id, "name": role.name})
            return role

        return self.transaction(_delete)

    def set_active_safely(self, target: Any, active: bool) -> Role:
        def _set_active() -> Role:
            role = self.repo.resolve(target)
            if not active:
                reason = self.deactivation_block_reason(role)
                if reason:
                    raise DomainActionError(reason)
            self.repo.set_active(role, active)
            self.after_write()
            self.audit("activated" if active else "deactivated", {"id": role.id, "name": role.name})
            return role

        return self.transaction(_set_active)

    def find_for_bulk(self, ids: Sequence[int] = (), uuids: Sequence[str] = ()) -> List[Role]:
        return self.repo.find_many(ids, uuids)

    def partition_deletable(self, roles: Iterable[Role]) -> Tuple[List[Role], List[Tuple[Role, str]]]:
        """Split ``roles`` into those that may be deleted together and those skipped with a reason."""
        deletable: List[Role] = []
        skipped: List[Tuple[Role, str]] = []
        holders_by_guard: Dict[str, Set[int]] = {}
        for role in roles:
            if role.is_trashed:
                continue
            holders = holders_by_guard.setdefault(role.guard_name, self._critical_holders(role.guard_name))
            reason = self.deletion_block_reason(role, holders)
            if reason:
                skipped.append((role, reason))
                continue
            holders.discard(role.id)
            deletable.append(role)
        return deletable, skipped

    def partition_activatable(
        self, roles: Iterable[Role], active: bool
    ) -> Tuple[List[Role], List[Tuple[Role, str]]]:
        """Roles whose state would change, and those refused by the deactivation rules."""
        updatable: List[Role] = []
        skipped: List[Tuple[Role, str]] = []
        holders_by_guard: Dict[str, Set[int]] = {}
        for role in roles:
            if role.is_trashed or bool(role.is_active) == bool(active):
                continue
            if not active:
                holders = holders_by_guard.setdefault(role.guard_name, self._critical_holders(role.guard_name))
                reason = self.deactivation_block_reason(role, holders)
                if reason:
                    skipped.append((role, reason))
                    continue
                holders.discard(role.id)
            updatable.append(role)
        return updatable, skipped

    def bulk_delete_safely(self, ids: Sequence[int] = (), uuids: Sequence[str] = ()) -> Tuple[int, int]:
        """Soft delete every allowed role; returns ``(deleted, skipped)``."""

        def _run() -> Tuple[int, int]:
            deletable, skipped = self.partition_deletable(self.find_for_bulk(ids, uuids))
            for role in deletable:
                self.repo.delete(role)
            if deletable:
                self.after_write()
                self.audit("bulk_delete", {"ids": [role.id for role in deletable], "count": len(deletable)})
            for role, reason in skipped:
                logger.info("Role %s skipped in bulk delete: %s", role.id, reason)
            return len(deletable), len(skipped)

        return self.transaction(_run)

    def bulk_set_active_safely(
        self, active: bool, ids: Sequence[int] = (), uuids: Sequence[str] = ()
    ) -> Tuple[int, int]:
        """Toggle every allowed role; returns ``(updated, skipped)``."""

        def _run() -> Tuple[int, int]:
            updatable, skipped = self.partition_activatable(self.find_for_bulk(ids, uuids), active)
            for role in updatable:
                self.repo.set_active(role, active)
            if updatable:
                self.after_write()
                self.audit(
                    "bulk_set_active",
                    {"ids": [role.id for role in updatable], "active": bool(active), "count": len(updatable)},
                )
            return len(updatable), len(skipped)

        return self.transaction(_run)
