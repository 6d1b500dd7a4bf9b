from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, select

from models import Permission, Role

from .base import Repository


class RoleRepository(Repository[Role]):
    model = Role
    searchable = ("name", "guard_name")
    sortable = ("id", "name", "guard_name", "is_active", "created_at")
    fillable = ("name", "guard_name", "is_active")
    default_sort = "id"

    def filter_guard_name(self, stmt, value: str):
        return stmt.where(Role.guard_name == value)

    def filter_permission(self, stmt, value: str):
        return stmt.where(Role.permissions.any(Permission.name == value))

    def name_taken(self, name: str, guard_name: str, *, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Role.id).where(func.lower(Role.name) == name.lower(), Role.guard_name == guard_name)
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def find_many(self, ids: Sequence[int] = (), uuids: Sequence[str] = ()) -> List[Role]:
        """Roles matching any of the ids or uuids, trashed rows included."""
        criteria = []
        if ids:
            criteria.append(Role.id.in_(list(ids)))
        if uuids:
            criteria.append(Role.uuid.in_([str(u) for u in uuids]))
        if not criteria:
            return []
        stmt = select(Role).where(or_(*criteria)).order_by(Role.id)
        return list(self.session.execute(stmt).scalars())

    def active_role_ids_granting(self, permission_names: Iterable[str], guard_name: str) -> List[int]:
        """Ids of active, non-deleted roles that hold every one of ``permission_names``."""
        names = sorted(set(permission_names))
        if not names:
            return []
        stmt = (
            select(Role.id)
            .join(Role.permissions)
            .where(
                Role.is_active.is_(True),
                Role.deleted_at.is_(None),
                Role.guard_name == guard_name,
                Permission.name.in_(names),
            )
            .group_by(Role.id)
            .having(func.count(func.distinct(Permission.name)) == len(names))
        )
        return list(self.session.execute(stmt).scalars())

    def permissions_by_ids(self, ids: Sequence[int], guard_name: str) -> List[Permission]:
        if not ids:
            return []
        stmt = select(Permission).where(Permission.id.in_(list(ids)), Permission.guard_name == guard_name)
        return list(self.session.execute(stmt).scalars())

    def stats(self) -> dict:
        total = self.session.execute(select(func.count(Role.id)).where(Role.deleted_at.is_(None))).scalar() or 0
        active = self.session.execute(
            select(func.count(Role.id)).where(Role.deleted_at.is_(None), Role.is_active.is_(True))
        ).scalar() or 0
        deleted = self.session.execute(select(func.count(Role.id)).where(Role.deleted_at.is_not(None))).scalar() or 0
        return {"total": total, "active": active, "inactive": total - active, "deleted": deleted}
