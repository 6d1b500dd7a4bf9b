"""Column mixins shared by the managed resources (roles, users)."""
from __future__ import annotations

import uuid
from datetime import datetime

from extensions import db


def _new_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class UuidMixin:
    """External identifier exposed to clients alongside the integer primary key."""

    uuid = db.Column(db.String(36), nullable=False, unique=True, index=True, default=_new_uuid)


class SoftDeleteMixin:
    """Tombstone column; rows with `deleted_at` set are hidden from default listings."""

    deleted_at = db.Column(db.DateTime, nullable=True, index=True)

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = datetime.utcnow()

    def restore(self) -> None:
        self.deleted_at = None


class ActivatableMixin:
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
