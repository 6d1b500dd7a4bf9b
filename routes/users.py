"""User management routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import current_app
from flask_login import current_user, login_required
from sqlalchemy import select

from extensions import db
from models import Role, User
from services.authz import Ability, Resource, authorize
from services.permissions import current_guard
from services.user_service import UserService
from services.validation import (
    ErrorBag,
    parse_bool,
    parse_email,
    parse_positive_int_list,
    parse_string,
)

from .base import redirect_with_flash, render_page, request_data, views
from .index_handler import IndexHandler, ResourceConfig
from .requests import UserIndexRequest, UserShowRequest, getlist_param

INDEX_ENDPOINT = "views.users_index"


def user_service() -> UserService:
    actor_id = current_user.id if getattr(current_user, "is_authenticated", False) else None
    return UserService(actor_id=actor_id)


users_handler = IndexHandler(
    user_service,
    ResourceConfig(
        resource=Resource.USERS,
        view="users/index",
        index_endpoint=INDEX_ENDPOINT,
        request_class=UserIndexRequest,
        with_relations=("roles",),
        with_counts=("roles",),
    ),
)
users_handler.register(views, "/users")


def _available_roles() -> list[dict]:
    stmt = (
        select(Role)
        .where(Role.guard_name == current_guard(), Role.deleted_at.is_(None))
        .order_by(Role.name)
    )
    return [{"id": role.id, "name": role.name, "is_active": bool(role.is_active)} for role in db.session.execute(stmt).scalars()]


def _validate_password(bag: ErrorBag, data: Dict[str, Any], *, required: bool) -> Optional[str]:
    password = data.get("password") or ""
    if not password:
        if required:
            bag.add("password", "El campo password es obligatorio.")
        return None
    min_length = int(current_app.config.get("MIN_PASSWORD_LENGTH", 8))
    if len(password) < min_length:
        bag.add("password", f"La contraseña debe tener al menos {min_length} caracteres.")
    if password != (data.get("password_confirmation") or ""):
        bag.add("password", "La confirmación de la contraseña no coincide.")
    return password


def _validated_payload(user: Optional[User] = None) -> Dict[str, Any]:
    data = request_data()
    bag = ErrorBag()
    name = bag.check(parse_string, data.get("name"), field="name", required=True, max_length=120)
    email = bag.check(parse_email, data.get("email"), field="email")
    if email and user_service().repo.email_taken(email, exclude_id=user.id if user else None):
        bag.add("email", "El email ya está registrado.")
    password = _validate_password(bag, data, required=user is None)
    is_active = bag.check(
        parse_bool,
        data.get("is_active"),
        field="is_active",
        default=bool(user.is_active) if user else True,
    )
    payload: Dict[str, Any] = {"name": name, "email": email, "is_active": is_active}
    if password:
        payload["password"] = password
    if user is None or "roles_ids" in data:
        payload["roles_ids"] = (
            bag.check(parse_positive_int_list, getlist_param(data, "roles_ids"), field="roles_ids", fallback=[]) or []
        )
    bag.raise_if_any()
    return payload


@views.route("/users/create")
@login_required
def users_create():
    authorize(Ability.CREATE, Resource.USERS)
    return render_page("users/create", {"availableRoles": _available_roles()})


@views.route("/users", methods=["POST"])
@login_required
def users_store():
    authorize(Ability.CREATE, Resource.USERS)
    user = user_service().create(_validated_payload())
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El usuario '{user.name}' ha sido creado correctamente.")


@views.route("/users/<int:user_id>")
@login_required
def users_show(user_id: int):
    authorize(Ability.VIEW, Resource.USERS)
    relations, counts = UserShowRequest.from_request()
    service = user_service()
    user = service.get_or_fail_by_id(user_id, relations)
    service.repo.attach_counts([user], counts)
    return render_page("users/show", {"item": service.to_item(user), "meta": {"with": relations, "withCount": counts}})


@views.route("/users/<int:user_id>/edit")
@login_required
def users_edit(user_id: int):
    authorize(Ability.UPDATE, Resource.USERS)
    service = user_service()
    user = service.get_or_fail_by_id(user_id, ("roles",))
    return render_page("users/edit", {"item": service.to_item(user), "availableRoles": _available_roles()})


@views.route("/users/<int:user_id>", methods=["PUT", "PATCH"])
@login_required
def users_update(user_id: int):
    authorize(Ability.UPDATE, Resource.USERS)
    service = user_service()
    user = service.get_or_fail_by_id(user_id)
    payload = _validated_payload(user)
    if not payload["is_active"] and user.id == current_user.id:
        return redirect_with_flash(INDEX_ENDPOINT, "error", "No puede desactivar su propia cuenta.")
    user = service.update(user, payload)
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El usuario '{user.name}' ha sido actualizado correctamente.")


@views.route("/users/<int:user_id>/active", methods=["PATCH"])
@login_required
def users_set_active(user_id: int):
    authorize(Ability.SET_ACTIVE, Resource.USERS)
    bag = ErrorBag()
    active = bag.check(parse_bool, request_data().get("active"), field="active")
    bag.raise_if_any()
    user = user_service().set_active(user_id, bool(active))
    state = "activado" if active else "desactivado"
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El usuario '{user.name}' ha sido {state} correctamente.")


@views.route("/users/<int:user_id>", methods=["DELETE"])
@login_required
def users_destroy(user_id: int):
    authorize(Ability.DELETE, Resource.USERS)
    service = user_service()
    user = service.get_or_fail_by_id(user_id)
    name = user.name
    service.delete(user)
    return redirect_with_flash(INDEX_ENDPOINT, "success", f"El usuario '{name}' ha sido eliminado correctamente.")
