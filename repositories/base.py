"""SQLAlchemy repository shared by the managed resources.

A repository owns every query against one model: listing (search, filters,
sort, pagination), point reads by id or uuid, attribute writes limited to the
``fillable`` allow-list, soft delete / restore / force delete and their bulk
variants. Repositories flush but never commit; the service layer owns the
transaction boundary (see ``services.transactions.atomic``).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Generic, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import selectinload

from extensions import db
from models.mixins import ActivatableMixin, SoftDeleteMixin
from services.list_query import ListQuery
from services.transactions import atomic

ModelT = TypeVar("ModelT")
R = TypeVar("R")


@dataclass
class Page(Generic[ModelT]):
    items: List[ModelT] = field(default_factory=list)
    page: int = 1
    per_page: int = 15
    total: int = 0

    @property
    def last_page(self) -> int:
        if not self.total or self.per_page <= 0:
            return 1
        return max(int(math.ceil(self.total / float(self.per_page))), 1)


class Repository(Generic[ModelT]):
    model: Type[ModelT]
    searchable: Sequence[str] = ()
    sortable: Sequence[str] = ("id",)
    fillable: Sequence[str] = ()
    default_sort: str = "id"
    default_direction: str = "desc"

    @property
    def session(self):
        return db.session

    @property
    def soft_deletes(self) -> bool:
        return issubclass(self.model, SoftDeleteMixin)

    # ------------------------------------------------------------------
    # Query building
    # ------------------------------------------------------------------
    def base_select(self, *, trashed: Optional[str] = None):
        stmt = select(self.model)
        if self.soft_deletes:
            if trashed == "only":
                stmt = stmt.where(self.model.deleted_at.is_not(None))
            elif trashed != "with":
                stmt = stmt.where(self.model.deleted_at.is_(None))
        return stmt

    def apply_search(self, stmt, q: Optional[str]):
        if not q or not self.searchable:
            return stmt
        for token in q.split():
            pattern = f"%{token}%"
            stmt = stmt.where(or_(*(getattr(self.model, col).ilike(pattern) for col in self.searchable)))
        return stmt

    def apply_filters(self, stmt, filters: Mapping[str, Any]):
        for key, value in filters.items():
            if key == "trashed" or value in (None, ""):
                continue
            handler = getattr(self, f"filter_{key}", None)
            if handler is not None:
                stmt = handler(stmt, value)
        return stmt

    def apply_sort(self, stmt, sort: Optional[str], direction: Optional[str]):
        key = sort if sort in self.sortable else self.default_sort
        direction = direction if direction in ("asc", "desc") else self.default_direction
        column = getattr(self.model, key)
        stmt = stmt.order_by(column.asc() if direction == "asc" else column.desc())
        if key != "id":
            stmt = stmt.order_by(self.model.id.desc())
        return stmt

    def query_for(self, query: ListQuery):
        stmt = self.base_select(trashed=query.filter("trashed"))
        stmt = self.apply_search(stmt, query.q)
        stmt = self.apply_filters(stmt, query.filters)
        return self.apply_sort(stmt, query.sort, query.direction)

    def filter_status(self, stmt, value: str):
        if not issubclass(self.model, ActivatableMixin):
            return stmt
        if value == "active":
            return stmt.where(self.model.is_active.is_(True))
        if value == "inactive":
            return stmt.where(self.model.is_active.is_(False))
        return stmt

    def _with_relations(self, stmt, relations: Iterable[str]):
        options = [selectinload(getattr(self.model, rel)) for rel in relations]
        return stmt.options(*options) if options else stmt

    def attach_counts(self, items: Sequence[ModelT], relations: Iterable[str]) -> None:
        """Set ``<relation>_count`` on each item with one grouped query per relation."""
        relations = list(relations)
        if not items or not relations:
            return
        ids = [item.id for item in items]
        for rel in relations:
            prop = self.model.__mapper__.relationships[rel]
            _parent_col, fk_col = prop.synchronize_pairs[0]
            stmt = select(fk_col, func.count()).where(fk_col.in_(ids)).group_by(fk_col)
            counts = dict(self.session.execute(stmt).all())
            for item in items:
                setattr(item, f"{rel}_count", int(counts.get(item.id, 0)))

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def paginate(
        self,
        query: ListQuery,
        with_relations: Iterable[str] = (),
        with_counts: Iterable[str] = (),
    ) -> Page[ModelT]:
        stmt = self._with_relations(self.query_for(query), with_relations)
        return self._page(stmt, query.page, query.per_page, with_counts)

    def paginate_by_ids_desc(
        self,
        ids: Sequence[int],
        per_page: int,
        with_relations: Iterable[str] = (),
        with_counts: Iterable[str] = (),
        page: int = 1,
    ) -> Page[ModelT]:
        stmt = self.base_select().where(self.model.id.in_(list(ids) or [-1])).order_by(self.model.id.desc())
        stmt = self._with_relations(stmt, with_relations)
        return self._page(stmt, page, per_page, with_counts)

    def _page(self, stmt, page: int, per_page: int, with_counts: Iterable[str]) -> Page[ModelT]:
        pagination = db.paginate(stmt, page=page, per_page=per_page, error_out=False)
        items = list(pagination.items)
        self.attach_counts(items, with_counts)
        return Page(items=items, page=pagination.page, per_page=pagination.per_page, total=pagination.total or 0)

    # ------------------------------------------------------------------
    # Point reads
    # ------------------------------------------------------------------
    def get_by_id(self, id: int, with_relations: Iterable[str] = (), *, with_trashed: bool = False) -> Optional[ModelT]:
        stmt = self._with_relations(self.base_select(trashed="with" if with_trashed else None), with_relations)
        return self.session.execute(stmt.where(self.model.id == id)).scalars().first()

    def get_or_fail_by_id(self, id: int, with_relations: Iterable[str] = (), *, with_trashed: bool = False) -> ModelT:
        stmt = self._with_relations(self.base_select(trashed="with" if with_trashed else None), with_relations)
        return db.first_or_404(stmt.where(self.model.id == id))

    def get_by_uuid(self, uuid: str, with_relations: Iterable[str] = (), *, with_trashed: bool = False) -> Optional[ModelT]:
        stmt = self._with_relations(self.base_select(trashed="with" if with_trashed else None), with_relations)
        return self.session.execute(stmt.where(self.model.uuid == str(uuid))).scalars().first()

    def get_or_fail_by_uuid(self, uuid: str, with_relations: Iterable[str] = (), *, with_trashed: bool = False) -> ModelT:
        stmt = self._with_relations(self.base_select(trashed="with" if with_trashed else None), with_relations)
        return db.first_or_404(stmt.where(self.model.uuid == str(uuid)))

    def resolve(self, target: Any) -> ModelT:
        if isinstance(target, self.model):
            return target
        if isinstance(target, int) or (isinstance(target, str) and target.isdigit()):
            return self.get_or_fail_by_id(int(target), with_trashed=True)
        return self.get_or_fail_by_uuid(str(target), with_trashed=True)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def fill(self, model: ModelT, attributes: Mapping[str, Any]) -> ModelT:
        for key in self.fillable:
            if key in attributes:
                setattr(model, key, attributes[key])
        return model

    def create(self, attributes: Mapping[str, Any]) -> ModelT:
        model = self.fill(self.model(), attributes)
        self.session.add(model)
        self.session.flush()
        return model

    def create_many(self, rows: Iterable[Mapping[str, Any]]) -> List[ModelT]:
        return [self.create(row) for row in rows]

    def update(self, target: Any, attributes: Mapping[str, Any]) -> ModelT:
        model = self.fill(self.resolve(target), attributes)
        self.session.flush()
        return model

    def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        unique_by: Sequence[str],
        update_columns: Optional[Sequence[str]] = None,
    ) -> int:
        if not rows:
            return 0
        table = self.model.__table__
        columns = list(update_columns or [key for key in rows[0] if key not in unique_by])
        dialect = self.session.get_bind().dialect.name
        if dialect == "mysql":
            from sqlalchemy.dialects.mysql import insert as mysql_insert

            stmt = mysql_insert(table).values(list(rows))
            stmt = stmt.on_duplicate_key_update(**{col: stmt.inserted[col] for col in columns})
        elif dialect in ("sqlite", "postgresql"):
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert as dialect_insert
            else:
                from sqlalchemy.dialects.postgresql import insert as dialect_insert

            stmt = dialect_insert(table).values(list(rows))
            stmt = stmt.on_conflict_do_update(
                index_elements=list(unique_by),
                set_={col: stmt.excluded[col] for col in columns},
            )
        else:
            raise NotImplementedError(f"upsert is not supported on {dialect}")
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def delete(self, target: Any) -> bool:
        model = self.resolve(target)
        if not self.soft_deletes:
            self.session.delete(model)
            self.session.flush()
            return True
        if model.is_trashed:
            return False
        model.soft_delete()
        self.session.flush()
        return True

    def force_delete(self, target: Any) -> bool:
        model = self.resolve(target)
        self.session.delete(model)
        self.session.flush()
        return True

    def restore(self, target: Any) -> bool:
        model = self.resolve(target)
        if not self.soft_deletes or not model.is_trashed:
            return False
        model.restore()
        self.session.flush()
        return True

    def set_active(self, target: Any, active: bool) -> ModelT:
        model = self.resolve(target)
        model.is_active = bool(active)
        self.session.flush()
        return model

    # ------------------------------------------------------------------
    # Bulk writes
    # ------------------------------------------------------------------
    def _ids_criteria(self, ids: Sequence[int]):
        return self.model.id.in_(list(ids))

    def _uuids_criteria(self, uuids: Sequence[str]):
        return self.model.uuid.in_([str(u) for u in uuids])

    def _bulk_update(self, criteria, extra_where, values: Mapping[str, Any]) -> int:
        stmt = update(self.model).where(criteria)
        if extra_where is not None:
            stmt = stmt.where(extra_where)
        result = self.session.execute(stmt.values(**values, updated_at=datetime.utcnow()))
        return int(result.rowcount or 0)

    def _bulk_delete(self, criteria) -> int:
        if not self.soft_deletes:
            return self._bulk_force_delete(criteria)
        return self._bulk_update(criteria, self.model.deleted_at.is_(None), {"deleted_at": datetime.utcnow()})

    def _bulk_restore(self, criteria) -> int:
        if not self.soft_deletes:
            return 0
        return self._bulk_update(criteria, self.model.deleted_at.is_not(None), {"deleted_at": None})

    def _bulk_force_delete(self, criteria) -> int:
        models = self.session.execute(select(self.model).where(criteria)).scalars().all()
        for model in models:
            self.session.delete(model)
        self.session.flush()
        return len(models)

    def _bulk_set_active(self, criteria, active: bool) -> int:
        extra_where = self.model.is_active != bool(active)
        if self.soft_deletes:
            extra_where = and_(extra_where, self.model.deleted_at.is_(None))
        return self._bulk_update(criteria, extra_where, {"is_active": bool(active)})

    def bulk_delete_by_ids(self, ids: Sequence[int]) -> int:
        return self._bulk_delete(self._ids_criteria(ids)) if ids else 0

    def bulk_force_delete_by_ids(self, ids: Sequence[int]) -> int:
        return self._bulk_force_delete(self._ids_criteria(ids)) if ids else 0

    def bulk_restore_by_ids(self, ids: Sequence[int]) -> int:
        return self._bulk_restore(self._ids_criteria(ids)) if ids else 0

    def bulk_set_active_by_ids(self, ids: Sequence[int], active: bool) -> int:
        return self._bulk_set_active(self._ids_criteria(ids), active) if ids else 0

    def bulk_delete_by_uuids(self, uuids: Sequence[str]) -> int:
        return self._bulk_delete(self._uuids_criteria(uuids)) if uuids else 0

    def bulk_force_delete_by_uuids(self, uuids: Sequence[str]) -> int:
        return self._bulk_force_delete(self._uuids_criteria(uuids)) if uuids else 0

    def bulk_restore_by_uuids(self, uuids: Sequence[str]) -> int:
        return self._bulk_restore(self._uuids_criteria(uuids)) if uuids else 0

    def bulk_set_active_by_uuids(self, uuids: Sequence[str], active: bool) -> int:
        return self._bulk_set_active(self._uuids_criteria(uuids), active) if uuids else 0

    # ------------------------------------------------------------------
    # Row locks
    # ------------------------------------------------------------------
    def with_pessimistic_lock_by_id(self, id: int, callback: Callable[[ModelT], R]) -> R:
        with atomic():
            stmt = select(self.model).where(self.model.id == id).with_for_update()
            return callback(db.first_or_404(stmt))

    def with_pessimistic_lock_by_uuid(self, uuid: str, callback: Callable[[ModelT], R]) -> R:
        with atomic():
            stmt = select(self.model).where(self.model.uuid == str(uuid)).with_for_update()
            return callback(db.first_or_404(stmt))
