from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional, Sequence

from models import User
from repositories import UserRepository

from .base_service import BaseService
from .errors import DomainActionError
from .permissions import current_guard, invalidate_permission_cache

SELF_DELETE_MESSAGE = "No puede eliminar su propia cuenta."
SELF_DEACTIVATE_MESSAGE = "No puede desactivar su propia cuenta."


class UserService(BaseService[User]):
    resource_name = "users"
    export_relations = ("roles",)
    export_counts = ("roles",)

    def __init__(self, repository: Optional[UserRepository] = None, *, actor_id: Optional[int] = None):
        super().__init__(repository or UserRepository())
        self.actor_id = actor_id

    def to_row(self, user: User) -> Dict[str, Any]:
        roles = [role.name for role in user.roles] if "roles" in user.__dict__ else []
        roles_count = getattr(user, "roles_count", None)
        return {
            "id": user.id,
            "uuid": user.uuid,
            "name": user.name,
            "email": user.email,
            "is_active": bool(user.is_active),
            "roles": roles,
            "roles_count": roles_count if roles_count is not None else len(roles),
            "created_at": user.created_at,
            "deleted_at": user.deleted_at,
        }

    def to_item(self, user: User) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "id": user.id,
            "uuid": user.uuid,
            "name": user.name,
            "email": user.email,
            "is_active": bool(user.is_active),
            "last_login_at": user.last_login_at,
            "created_at": user.created_at,
            "updated_at": user.updated_at,
        }
        roles_count = getattr(user, "roles_count", None)
        if roles_count is not None:
            item["roles_count"] = roles_count
        if "roles" in user.__dict__:
            item["roles"] = [{"id": role.id, "name": role.name} for role in user.roles]
        return item

    def default_export_columns(self) -> "OrderedDict[str, str]":
        return OrderedDict(
            [
                ("id", "#"),
                ("name", "Nombre"),
                ("email", "Email"),
                ("roles", "Roles"),
                ("is_active", "Estado"),
                ("created_at", "Creado"),
            ]
        )

    # ------------------------------------------------------------------
    # Write hooks
    # ------------------------------------------------------------------
    def _sync_roles(self, user: User, attributes: Mapping[str, Any]) -> None:
        if "roles_ids" not in attributes:
            return
        ids = [int(value) for value in attributes.get("roles_ids") or []]
        user.roles = self.repo.roles_by_ids(ids, current_guard())
        self.repo.session.flush()

    def after_create(self, user: User, attributes: Mapping[str, Any]) -> None:
        self._sync_roles(user, attributes)

    def after_update(self, user: User, attributes: Mapping[str, Any]) -> None:
        self._sync_roles(user, attributes)

    def after_write(self) -> None:
        invalidate_permission_cache()

    # ------------------------------------------------------------------
    # Self-protection
    # ------------------------------------------------------------------
    def _guard_self(self, ids: Sequence[int] = (), uuids: Sequence[str] = (), *, message: str) -> None:
        if self.actor_id is None:
            return
        if self.actor_id in {int(i) for i in ids}:
            raise DomainActionError(message)
        if uuids:
            actor = self.repo.get_by_id(self.actor_id, with_trashed=True)
            if actor is not None and actor.uuid in {str(u) for u in uuids}:
                raise DomainActionError(message)

    def _guard_target(self, target: Any, *, message: str) -> User:
        user = self.repo.resolve(target)
        if self.actor_id is not None and user.id == self.actor_id:
            raise DomainActionError(message)
        return user

    def delete(self, target: Any) -> bool:
        return super().delete(self._guard_target(target, message=SELF_DELETE_MESSAGE))

    def force_delete(self, target: Any) -> bool:
        return super().force_delete(self._guard_target(target, message=SELF_DELETE_MESSAGE))

    def set_active(self, target: Any, active: bool) -> User:
        if not active:
            target = self._guard_target(target, message=SELF_DEACTIVATE_MESSAGE)
        return super().set_active(target, active)

    def bulk_delete_by_ids(self, ids: Sequence[int]) -> int:
        self._guard_self(ids, message=SELF_DELETE_MESSAGE)
        return super().bulk_delete_by_ids(ids)

    def bulk_delete_by_uuids(self, uuids: Sequence[str]) -> int:
        self._guard_self(uuids=uuids, message=SELF_DELETE_MESSAGE)
        return super().bulk_delete_by_uuids(uuids)

    def bulk_force_delete_by_ids(self, ids: Sequence[int]) -> int:
        self._guard_self(ids, message=SELF_DELETE_MESSAGE)
        return super().bulk_force_delete_by_ids(ids)

    def bulk_force_delete_by_uuids(self, uuids: Sequence[str]) -> int:
        self._guard_self(uuids=uuids, message=SELF_DELETE_MESSAGE)
        return super().bulk_force_delete_by_uuids(uuids)

    def bulk_set_active_by_ids(self, ids: Sequence[int], active: bool) -> int:
        if not active:
            self._guard_self(ids, message=SELF_DEACTIVATE_MESSAGE)
        return super().bulk_set_active_by_ids(ids, active)

    def bulk_set_active_by_uuids(self, uuids: Sequence[str], active: bool) -> int:
        if not active:
            self._guard_self(uuids=uuids, message=SELF_DEACTIVATE_MESSAGE)
        return super().bulk_set_active_by_uuids(uuids, active)
