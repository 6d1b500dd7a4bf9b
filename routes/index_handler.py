"""Generic index / export / bulk / selected endpoints for a managed resource.

An ``IndexHandler`` is composed from a service factory and a
``ResourceConfig``; ``register`` binds its views on a blueprint. Resources
that need custom behaviour for one endpoint register their own view and
call back into the handler for the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Type

from flask import Blueprint, current_app, request
from flask_login import login_required

from services.authz import Ability, Resource, authorize
from services.results import capture

from .base import redirect_with_flash, render_page
from .requests import BulkCommand, IndexRequest, parse_bulk_request, parse_export_columns, parse_selected_request

logger = logging.getLogger(__name__)

BULK_EMPTY_MESSAGE = "Se requieren IDs o UUIDs para la operación"
BULK_FAILED_MESSAGE = "Error durante la operación masiva. Inténtelo nuevamente."
EXPORT_FAILED_MESSAGE = "Error durante la exportación. Inténtelo nuevamente."


def bulk_success_message(command: BulkCommand, count: int) -> str:
    if command.action == "delete":
        label = "eliminados"
    elif command.action == "restore":
        label = "restaurados"
    elif command.action == "forceDelete":
        label = "eliminados permanentemente"
    else:
        label = "activados" if command.active else "desactivados"
    return f"{count} registro(s) {label} exitosamente"


@dataclass(frozen=True)
class ResourceConfig:
    resource: Resource
    view: str
    index_endpoint: str
    request_class: Type[IndexRequest]
    with_relations: Sequence[str] = ()
    with_counts: Sequence[str] = ()
    export_formats: Sequence[str] = ("csv", "xlsx", "pdf", "json")
    default_export_format: Optional[str] = None
    index_extras: Optional[Callable[[], Dict[str, Any]]] = None


class IndexHandler:
    def __init__(self, service_factory: Callable[[], Any], config: ResourceConfig):
        self.service_factory = service_factory
        self.config = config

    @property
    def service(self):
        return self.service_factory()

    @property
    def name(self) -> str:
        return self.config.resource.value

    def _ok(self, message: str):
        return redirect_with_flash(self.config.index_endpoint, "success", message)

    def _fail(self, message: str):
        return redirect_with_flash(self.config.index_endpoint, "error", message)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def index(self):
        authorize(Ability.VIEW_ANY, self.config.resource)
        query = self.config.request_class.from_request()
        result = self.service.list(query, self.config.with_relations, self.config.with_counts)
        props: Dict[str, Any] = {
            "rows": result["rows"],
            "meta": result["meta"],
            "filters": {
                "q": query.q,
                "sort": query.sort,
                "dir": query.direction,
                "perPage": query.per_page,
                **dict(query.filters),
            },
        }
        if self.config.index_extras is not None:
            props.update(self.config.index_extras())
        return render_page(self.config.view, props)

    def export_format(self, requested: Optional[str]) -> str:
        default = self.config.default_export_format or current_app.config.get("DEFAULT_EXPORT_FORMAT", "csv")
        fmt = (requested or default).strip().lower()
        return fmt if fmt in self.config.export_formats else default

    def export(self):
        authorize(Ability.EXPORT, self.config.resource)
        query = self.config.request_class.from_request()
        fmt = self.export_format(request.args.get("format"))
        columns = parse_export_columns()
        service = self.service
        if columns:
            result = capture(lambda: service.export(query, fmt, columns=columns), operation=f"{self.name}.export")
        else:
            result = capture(lambda: service.export(query, fmt), operation=f"{self.name}.export")
        if result.ok:
            return result.value
        return self._fail(result.message if result.is_domain_error else EXPORT_FAILED_MESSAGE)

    def dispatch_bulk(self, command: BulkCommand) -> int:
        service = self.service
        if command.action == "delete":
            return service.bulk_delete_by_ids(command.ids) + service.bulk_delete_by_uuids(command.uuids)
        if command.action == "restore":
            return service.bulk_restore_by_ids(command.ids) + service.bulk_restore_by_uuids(command.uuids)
        if command.action == "forceDelete":
            return service.bulk_force_delete_by_ids(command.ids) + service.bulk_force_delete_by_uuids(command.uuids)
        if command.action == "setActive":
            return service.bulk_set_active_by_ids(command.ids, command.active) + service.bulk_set_active_by_uuids(
                command.uuids, command.active
            )
        raise ValueError(f"Unsupported bulk action: {command.action}")

    def bulk(self, command: Optional[BulkCommand] = None):
        authorize(Ability.UPDATE, self.config.resource)
        command = command or parse_bulk_request()
        if command.empty:
            return self._fail(BULK_EMPTY_MESSAGE)
        result = capture(lambda: self.dispatch_bulk(command), operation=f"{self.name}.bulk.{command.action}")
        if result.ok:
            return self._ok(bulk_success_message(command, result.value))
        return self._fail(result.message if result.is_domain_error else BULK_FAILED_MESSAGE)

    def selected(self):
        authorize(Ability.VIEW_ANY, self.config.resource)
        selection = parse_selected_request()
        result = self.service.list_by_ids_desc(
            selection.ids,
            selection.per_page,
            self.config.with_relations,
            self.config.with_counts,
            page=selection.page,
        )
        return render_page(self.config.view, {"rows": result["rows"], "meta": result["meta"]})

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(
        self,
        blueprint: Blueprint,
        prefix: Optional[str] = None,
        *,
        actions: Sequence[str] = ("index", "export", "bulk", "selected"),
    ) -> None:
        prefix = prefix or f"/{self.name}"
        rules = {
            "index": (prefix, ["GET"], self.index),
            "export": (f"{prefix}/export", ["GET"], self.export),
            "bulk": (f"{prefix}/bulk", ["POST"], self.bulk),
            "selected": (f"{prefix}/selected", ["GET"], self.selected),
        }
        for action in actions:
            rule, methods, view = rules[action]
            endpoint = f"{self.name}_{action}"

            def _view(_view=view):
                return _view()

            _view.__name__ = endpoint
            blueprint.add_url_rule(rule, endpoint=endpoint, view_func=login_required(_view), methods=methods)
