"""Generic service orchestrating a repository for one managed resource.

Services shape rows for listing and export, wrap every write in a
transaction and expose override points (``to_row``, ``to_item``, export
columns and filename, ``after_create`` / ``after_update``) for concrete
resources.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

from flask import Response, current_app, has_app_context

from exporters import Exporter, get_exporter
from repositories.base import Page, Repository

from .audit import record_audit_event
from .export_cursor import ExportCursor
from .list_query import ListQuery
from .transactions import atomic

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")
R = TypeVar("R")

DEFAULT_EXPORT_PAGE_SIZE = 1000


class BaseService(Generic[ModelT]):
    resource_name: str = "records"
    export_relations: Sequence[str] = ()
    export_counts: Sequence[str] = ()

    def __init__(self, repository: Repository[ModelT]):
        self.repo = repository

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def transaction(self, callback: Callable[[], R]) -> R:
        with atomic():
            return callback()

    def with_pessimistic_lock_by_id(self, id: int, callback: Callable[[ModelT], R]) -> R:
        return self.repo.with_pessimistic_lock_by_id(id, callback)

    def with_pessimistic_lock_by_uuid(self, uuid: str, callback: Callable[[ModelT], R]) -> R:
        return self.repo.with_pessimistic_lock_by_uuid(uuid, callback)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------
    def list(
        self,
        query: ListQuery,
        with_relations: Iterable[str] = (),
        with_counts: Iterable[str] = (),
    ) -> Dict[str, Any]:
        return self.make_list_result(self.repo.paginate(query, with_relations, with_counts))

    def list_by_ids_desc(
        self,
        ids: Sequence[int],
        per_page: int,
        with_relations: Iterable[str] = (),
        with_counts: Iterable[str] = (),
        page: int = 1,
    ) -> Dict[str, Any]:
        return self.make_list_result(
            self.repo.paginate_by_ids_desc(ids, per_page, with_relations, with_counts, page=page)
        )

    def make_list_result(self, page: Page[ModelT]) -> Dict[str, Any]:
        return {
            "rows": [self.to_row(item) for item in page.items],
            "meta": {
                "currentPage": page.page,
                "perPage": page.per_page,
                "total": page.total,
                "lastPage": page.last_page,
            },
        }

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def export(
        self,
        query: ListQuery,
        fmt: str,
        columns: Optional[Union[Sequence[str], Mapping[str, str]]] = None,
        filename: Optional[str] = None,
    ) -> Response:
        exporter = self.resolve_exporter(fmt)
        resolved = self.resolve_export_columns(columns)
        cursor = self.export_cursor(query, list(resolved)).open()
        logger.info("Exporting %s as %s: %s", self.resource_name, exporter.format, query.to_dict())
        return exporter.stream(cursor, resolved, filename or self.default_export_filename(exporter.format, query))

    def export_cursor(self, query: ListQuery, columns: Optional[Sequence[str]] = None) -> ExportCursor:
        return ExportCursor(
            lambda page_query: self.repo.paginate(page_query, self.export_relations, self.export_counts),
            query,
            page_size=self.export_page_size(),
            transform=self.to_row,
            columns=columns,
        )

    def resolve_exporter(self, fmt: str) -> Exporter:
        return get_exporter(fmt)

    def resolve_export_columns(
        self, columns: Optional[Union[Sequence[str], Mapping[str, str]]] = None
    ) -> "OrderedDict[str, str]":
        defaults = self.default_export_columns()
        if not columns:
            return OrderedDict(defaults)
        if isinstance(columns, Mapping):
            return OrderedDict((str(key), str(label)) for key, label in columns.items())
        resolved: "OrderedDict[str, str]" = OrderedDict()
        for key in columns:
            resolved[str(key)] = defaults.get(str(key), str(key))
        return resolved

    def export_page_size(self) -> int:
        if has_app_context():
            return int(current_app.config.get("EXPORT_PAGE_SIZE", DEFAULT_EXPORT_PAGE_SIZE))
        return DEFAULT_EXPORT_PAGE_SIZE

    def default_export_columns(self) -> "OrderedDict[str, str]":
        return OrderedDict([("id", "#"), ("created_at", "Creado"), ("updated_at", "Actualizado")])

    def default_export_filename(self, fmt: str, query: ListQuery) -> str:
        return f"{self.resource_name}_export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.{fmt}"

    # ------------------------------------------------------------------
    # Row shaping
    # ------------------------------------------------------------------
    def to_row(self, model: ModelT) -> Dict[str, Any]:
        return {column.key: getattr(model, column.key) for column in model.__table__.columns}

    def to_item(self, model: ModelT) -> Dict[str, Any]:
        return self.to_row(model)

    # ------------------------------------------------------------------
    # Point reads
    # ------------------------------------------------------------------
    def get_by_id(self, id: int, with_relations: Iterable[str] = ()) -> Optional[ModelT]:
        return self.repo.get_by_id(id, with_relations)

    def get_or_fail_by_id(self, id: int, with_relations: Iterable[str] = ()) -> ModelT:
        return self.repo.get_or_fail_by_id(id, with_relations)

    def get_by_uuid(self, uuid: str, with_relations: Iterable[str] = ()) -> Optional[ModelT]:
        return self.repo.get_by_uuid(uuid, with_relations)

    def get_or_fail_by_uuid(self, uuid: str, with_relations: Iterable[str] = ()) -> ModelT:
        return self.repo.get_or_fail_by_uuid(uuid, with_relations)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def audit(self, action: str, details: Optional[Dict[str, Any]] = None) -> None:
        record_audit_event(f"{self.resource_name}.{action}", details)

    def after_create(self, model: ModelT, attributes: Mapping[str, Any]) -> None:
        """Hook run inside the create transaction."""

    def after_update(self, model: ModelT, attributes: Mapping[str, Any]) -> None:
        """Hook run inside the update transaction."""

    def after_write(self) -> None:
        """Hook run inside every write transaction once the change is flushed."""

    def create(self, attributes: Mapping[str, Any]) -> ModelT:
        def _create() -> ModelT:
            model = self.repo.create(attributes)
            self.after_create(model, attributes)
            self.after_write()
            self.audit("created", {"id": model.id})
            return model

        return self.transaction(_create)

    def create_many(self, rows: Iterable[Mapping[str, Any]]) -> List[ModelT]:
        return self.transaction(lambda: [self.create(row) for row in rows])

    def update(self, target: Any, attributes: Mapping[str, Any]) -> ModelT:
        def _update() -> ModelT:
            model = self.repo.update(target, attributes)
            self.after_update(model, attributes)
            self.after_write()
            self.audit("updated", {"id": model.id})
            return model

        return self.transaction(_update)

    def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        unique_by: Sequence[str],
        update_columns: Optional[Sequence[str]] = None,
    ) -> int:
        return self.transaction(lambda: self.repo.upsert(rows, unique_by, update_columns))

    def _single(self, action: str, operation: Callable[[], R], target: Any) -> R:
        def _run() -> R:
            result = operation()
            self.after_write()
            self.audit(action, {"target": getattr(target, "id", target)})
            return result

        return self.transaction(_run)

    def delete(self, target: Any) -> bool:
        return self._single("deleted", lambda: self.repo.delete(target), target)

    def force_delete(self, target: Any) -> bool:
        return self._single("force_deleted", lambda: self.repo.force_delete(target), target)

    def restore(self, target: Any) -> bool:
        return self._single("restored", lambda: self.repo.restore(target), target)

    def set_active(self, target: Any, active: bool) -> ModelT:
        return self._single("activated" if active else "deactivated", lambda: self.repo.set_active(target, active), target)

    # ------------------------------------------------------------------
    # Bulk writes
    # ------------------------------------------------------------------
    def _bulk(self, action: str, operation: Callable[[], int], details: Dict[str, Any]) -> int:
        def _run() -> int:
            count = operation()
            if count:
                self.after_write()
                self.audit(f"bulk_{action}", {**details, "count": count})
            return count

        return self.transaction(_run)

    def bulk_delete_by_ids(self, ids: Sequence[int]) -> int:
        return self._bulk("delete", lambda: self.repo.bulk_delete_by_ids(ids), {"ids": list(ids)})

    def bulk_force_delete_by_ids(self, ids: Sequence[int]) -> int:
        return self._bulk("force_delete", lambda: self.repo.bulk_force_delete_by_ids(ids), {"ids": list(ids)})

    def bulk_restore_by_ids(self, ids: Sequence[int]) -> int:
        return self._bulk("restore", lambda: self.repo.bulk_restore_by_ids(ids), {"ids": list(ids)})

    def bulk_set_active_by_ids(self, ids: Sequence[int], active: bool) -> int:
        return self._bulk(
            "set_active",
            lambda: self.repo.bulk_set_active_by_ids(ids, active),
            {"ids": list(ids), "active": bool(active)},
        )

    def bulk_delete_by_uuids(self, uuids: Sequence[str]) -> int:
        return self._bulk("delete", lambda: self.repo.bulk_delete_by_uuids(uuids), {"uuids": list(uuids)})

    def bulk_force_delete_by_uuids(self, uuids: Sequence[str]) -> int:
        return self._bulk("force_delete", lambda: self.repo.bulk_force_delete_by_uuids(uuids), {"uuids": list(uuids)})

    def bulk_restore_by_uuids(self, uuids: Sequence[str]) -> int:
        return self._bulk("restore", lambda: self.repo.bulk_restore_by_uuids(uuids), {"uuids": list(uuids)})

    def bulk_set_active_by_uuids(self, uuids: Sequence[str], active: bool) -> int:
        return self._bulk(
            "set_active",
            lambda: self.repo.bulk_set_active_by_uuids(uuids, active),
            {"uuids": list(uuids), "active": bool(active)},
        )
