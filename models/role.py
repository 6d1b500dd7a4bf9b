from __future__ import annotations

from extensions import db

from .mixins import ActivatableMixin, SoftDeleteMixin, TimestampMixin, UuidMixin


role_permissions = db.Table(
    "role_permissions",
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    db.Column("permission_id", db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(TimestampMixin, db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    guard_name = db.Column(db.String(32), nullable=False, default="web")
    description = db.Column(db.String(255), nullable=True)

    roles = db.relationship("Role", secondary=role_permissions, back_populates="permissions")

    __table_args__ = (
        db.UniqueConstraint("name", "guard_name", name="uq_permissions_name_guard"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<Permission {self.name}>"


class Role(UuidMixin, ActivatableMixin, SoftDeleteMixin, TimestampMixin, db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    guard_name = db.Column(db.String(32), nullable=False, default="web")

    permissions = db.relationship(
        "Permission",
        secondary=role_permissions,
        back_populates="roles",
        order_by="Permission.name",
    )
    users = db.relationship("User", secondary=user_roles, back_populates="roles")

    __table_args__ = (
        db.UniqueConstraint("name", "guard_name", name="uq_roles_name_guard"),
    )

    @property
    def permission_names(self) -> list[str]:
        return [permission.name for permission in self.permissions]

    def __repr__(self) -> str:  # pragma: no cover - repr helper
        return f"<Role {self.name}>"
