"""Account settings routes for the signed-in user."""

from __future__ import annotations

from flask import current_app, redirect, url_for
from flask_login import current_user, login_required

from services.authz import require_permission
from services.audit import record_audit_event
from services.transactions import atomic
from services.validation import ErrorBag, parse_email, parse_string
from repositories import UserRepository

from .base import redirect_with_flash, render_page, request_data, views


@views.route("/settings")
@login_required
def settings_root():
    return redirect(url_for("views.settings_profile"))


@views.route("/settings/profile", methods=["GET"])
@login_required
def settings_profile():
    require_permission("settings.profile.view")
    return render_page(
        "settings/profile",
        {"user": {"id": current_user.id, "name": current_user.name, "email": current_user.email}},
    )


@views.route("/settings/profile", methods=["PATCH"])
@login_required
def settings_profile_update():
    require_permission("settings.profile.update")
    data = request_data()
    bag = ErrorBag()
    name = bag.check(parse_string, data.get("name"), field="name", required=True, max_length=120)
    email = bag.check(parse_email, data.get("email"), field="email")
    if email and UserRepository().email_taken(email, exclude_id=current_user.id):
        bag.add("email", "El email ya está registrado.")
    bag.raise_if_any()
    with atomic():
        current_user.name = name
        current_user.email = email
        record_audit_event("settings.profile.updated", {"email": email})
    return redirect_with_flash("views.settings_profile", "success", "Perfil actualizado correctamente.")


@views.route("/settings/password", methods=["GET"])
@login_required
def settings_password():
    require_permission("settings.password.update")
    return render_page("settings/password")


@views.route("/settings/password", methods=["PUT"])
@login_required
def settings_password_update():
    require_permission("settings.password.update")
    data = request_data()
    bag = ErrorBag()
    current = data.get("current_password") or ""
    password = data.get("password") or ""
    if not current:
        bag.add("current_password", "El campo current_password es obligatorio.")
    elif not current_user.check_password(current):
        bag.add("current_password", "La contraseña actual no es correcta.")
    min_length = int(current_app.config.get("MIN_PASSWORD_LENGTH", 8))
    if not password:
        bag.add("password", "El campo password es obligatorio.")
    else:
        if len(password) < min_length:
            bag.add("password", f"La contraseña debe tener al menos {min_length} caracteres.")
        if password != (data.get("password_confirmation") or ""):
            bag.add("password", "La confirmación de la contraseña no coincide.")
        if current and password == current:
            bag.add("password", "La nueva contraseña debe ser distinta de la actual.")
    bag.raise_if_any()
    with atomic():
        current_user.set_password(password)
        record_audit_event("settings.password.updated")
    return redirect_with_flash("views.settings_password", "success", "Contraseña actualizada correctamente.")


@views.route("/settings/appearance")
@login_required
def settings_appearance():
    require_permission("settings.appearance.view")
    return render_page("settings/appearance")
