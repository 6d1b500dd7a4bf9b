from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy import func, select

from models import Role, User

from .base import Repository


class UserRepository(Repository[User]):
    model = User
    searchable = ("name", "email")
    sortable = ("id", "name", "email", "is_active", "created_at")
    fillable = ("name", "email", "is_active")

    def fill(self, model: User, attributes: Mapping[str, Any]) -> User:
        super().fill(model, attributes)
        if attributes.get("password"):
            model.set_password(attributes["password"])
        return model

    def filter_role(self, stmt, value: str):
        return stmt.where(User.roles.any(Role.name == value))

    def find_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return self.session.execute(stmt).scalars().first()

    def email_taken(self, email: str, *, exclude_id: Optional[int] = None) -> bool:
        stmt = select(User.id).where(func.lower(User.email) == email.strip().lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def roles_by_ids(self, ids: Sequence[int], guard_name: str) -> List[Role]:
        if not ids:
            return []
        stmt = select(Role).where(Role.id.in_(list(ids)), Role.guard_name == guard_name, Role.deleted_at.is_(None))
        return list(self.session.execute(stmt).scalars())
