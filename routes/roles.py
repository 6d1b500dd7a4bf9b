"""Role management routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app
from flask_login import login_required

from models import Role
from services.authz import Ability, Resource, authorize
from services.permissions import available_permissions
from services.results import capture
from services.role_service import RoleService
from services.validation import ErrorBag, parse_bool, parse_positive_int_list, parse_string

from .base import redirect_with_flash, render_page, request_data, views
from .index_handler import BULK_EMPTY_MESSAGE, BULK_FAILED_MESSAGE, IndexHandler, ResourceConfig
from .requests import RoleIndexRequest, RoleShowRequest, getlist_param, parse_bulk_request

INDEX_ENDPOINT = "views.roles_index"


def role_service() -> RoleService:
    return RoleService()


roles_handler = IndexHandler(
    role_service,
    ResourceConfig(
        resource=Resource.ROLES,
        view="roles/index",
        index_endpoint=INDEX_ENDPOINT,
        request_class=RoleIndexRequest,
        with_relations=("permissions",),
        with_counts=("users",),
        index_extras=lambda: role_service().index_extras(),
    ),
)
roles_handler.register(views, "/roles", actions=("index", "export", "selected"))


def _validated_payload(role: Optional[Role] = None) -> Dict[str, Any]:
    data = request_data()
    bag = ErrorBag()
    guard = current_app.config.get("AUTH_GUARD", "web")
    name = bag.check(parse_string, data.get("name"), field="name", required=True, max_length=128)
    guard_name = bag.check(parse_string, data.get("guard_name"), field="guard_name", max_length=32) or (
        role.guard_name if role else guard
    )
    is_active = bag.check(
        parse_bool,
        data.get("is_active"),
        field="is_active",
        default=bool(role.is_active) if role else True,
    )
    payload: Dict[str, Any] = {"name": name, "guard_name": guard_name, "is_active": is_active}
    if role is None or "permissions_ids" in data:
        payload["permissions_ids"] = (
            bag.check(parse_positive_int_list, getlist_param(data, "permissions_ids"), field="permissions_ids", fallback=[])
            or []
        )
    if name and role_service().repo.name_taken(name, guard_name, exclude_id=role.id if role else None):
        bag.add("name", "El nombre del rol ya está en uso.")
    bag.raise_if_any()
    return payload


@views.route("/roles/bulk", methods=["POST"])
@login_required
def roles_bulk():
    action = request_data().get("action")
    if action == "delete":
        return _bulk_delete()
    if action == "setActive":
        return _bulk_set_active()
    return roles_handler.bulk()


def _bulk_delete():
    authorize(Ability.DELETE, Resource.ROLES)
    command = parse_bulk_request()
    if command.empty:
        return redirect_with_flash(INDEX_ENDPOINT, "error", BULK_EMPTY_MESSAGE)
    result = capture(lambda: role_service().bulk_delete_safely(command.ids, command.uuids), operation="roles.bulk.delete")
    if not result.ok:
        return redirect_with_flash(
            INDEX_ENDPOINT, "error", result.message if result.is_domain_error else BULK_FAILED_MESSAGE
        )
    deleted, skipped = result.value
    if skipped:
        return redirect_with_flash(
            INDEX_ENDPOINT,
            "warning",
            f"Se eliminaron {deleted} rol(es). Se omitieron {skipped} rol(es) por validaciones de eliminación.",
        )
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"Se eliminaron {deleted} rol(es) correctamente.")


def _bulk_set_active():
    authorize(Ability.SET_ACTIVE, Resource.ROLES)
    command = parse_bulk_request()
    if command.empty:
        return redirect_with_flash(INDEX_ENDPOINT, "error", BULK_EMPTY_MESSAGE)
    result = capture(
        lambda: role_service().bulk_set_active_safely(command.active, command.ids, command.uuids),
        operation="roles.bulk.setActive",
    )
    if not result.ok:
        return redirect_with_flash(
            INDEX_ENDPOINT, "error", result.message if result.is_domain_error else BULK_FAILED_MESSAGE
        )
    updated, skipped = result.value
    verb = "activaron" if command.active else "desactivaron"
    if skipped:
        return redirect_with_flash(
            INDEX_ENDPOINT,
            "warning",
            f"Se {verb} {updated} rol(es). Se omitieron {skipped} rol(es) por validaciones.",
        )
    if updated == 0:
        return redirect_with_flash(
            INDEX_ENDPOINT,
            "info",
            "No se realizó ningún cambio. Todos los roles ya estaban en el estado solicitado.",
        )
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"Se {verb} {updated} rol(es) correctamente.")


@views.route("/roles/create")
@login_required
def roles_create():
    authorize(Ability.CREATE, Resource.ROLES)
    return render_page("roles/create", {"availablePermissions": available_permissions()})


@views.route("/roles", methods=["POST"])
@login_required
def roles_store():
    authorize(Ability.CREATE, Resource.ROLES)
    role = role_service().create(_validated_payload())
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El rol '{role.name}' ha sido creado correctamente.")


@views.route("/roles/<int:role_id>")
@login_required
def roles_show(role_id: int):
    authorize(Ability.VIEW, Resource.ROLES)
    relations, counts = RoleShowRequest.from_request()
    service = role_service()
    role = service.get_or_fail_by_id(role_id, relations)
    service.repo.attach_counts([role], counts)
    return render_page(
        "roles/show",
        {"item": service.to_item(role), "meta": {"with": relations, "withCount": counts}},
    )


@views.route("/roles/<int:role_id>/edit")
@login_required
def roles_edit(role_id: int):
    authorize(Ability.UPDATE, Resource.ROLES)
    service = role_service()
    role = service.get_or_fail_by_id(role_id, ("permissions",))
    return render_page("roles/edit", {"item": service.to_item(role), "availablePermissions": available_permissions()})


@views.route("/roles/<int:role_id>", methods=["PUT", "PATCH"])
@login_required
def roles_update(role_id: int):
    authorize(Ability.UPDATE, Resource.ROLES)
    service = role_service()
    role = service.get_or_fail_by_id(role_id)
    payload = _validated_payload(role)
    if not payload["is_active"] and role.is_active:
        reason = service.deactivation_block_reason(role)
        if reason:
            return redirect_with_flash(INDEX_ENDPOINT, "error", reason)
    role = service.update(role, payload)
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El rol '{role.name}' ha sido actualizado correctamente.")


@views.route("/roles/<int:role_id>/active", methods=["PATCH"])
@login_required
def roles_set_active(role_id: int):
    authorize(Ability.SET_ACTIVE, Resource.ROLES)
    bag = ErrorBag()
    active = bag.check(parse_bool, request_data().get("active"), field="active")
    bag.raise_if_any()
    role = role_service().set_active_safely(role_id, bool(active))
    state = "activado" if active else "desactivado"
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El rol '{role.name}' ha sido {state} correctamente.")


@views.route("/roles/<int:role_id>", methods=["DELETE"])
@login_required
def roles_destroy(role_id: int):
    authorize(Ability.DELETE, Resource.ROLES)
    role = role_service().delete_safely(role_id)
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El rol '{role.name}' ha sido eliminado correctamente.")
