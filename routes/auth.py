"""Authentication routes."""

from __future__ import annotations

from datetime import datetime

from flask import current_app, redirect, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user

from extensions import limiter
from repositories import UserRepository
from services.audit import record_audit_event
from services.transactions import atomic
from services.validation import ErrorBag, parse_email

from .base import redirect_with_flash, render_page, request_data, views

INVALID_CREDENTIALS = "Las credenciales no coinciden con nuestros registros."


def _login_limit() -> str:
    return current_app.config.get("RATELIMIT_LOGIN", "5 per minute")


def _safe_next(target: str | None) -> str | None:
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


@views.route("/login", methods=["GET"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("views.dashboard"))
    return render_page("auth/login", {"next": _safe_next(request.args.get("next"))})


@views.route("/login", methods=["POST"])
@limiter.limit(_login_limit, methods=["POST"])
def login_submit():
    data = request_data()
    bag = ErrorBag()
    email = bag.check(parse_email, data.get("email"), field="email")
    password = data.get("password") or ""
    if not password:
        bag.add("password", "El campo password es obligatorio.")
    bag.raise_if_any()

    user = UserRepository().find_by_email(email)
    if not user or not user.can_sign_in or not user.check_password(password):
        current_app.logger.info("Failed login attempt for %s", email)
        session["errors"] = {"email": [INVALID_CREDENTIALS]}
        return redirect(url_for("views.login"))

    remember = str(data.get("remember") or "").lower() in {"1", "true", "on", "yes"}
    login_user(user, remember=remember, fresh=True)
    with atomic():
        user.last_login_at = datetime.utcnow()
        record_audit_event("login", {"email": user.email}, user_id=user.id)
    dest = _safe_next(request.args.get("next") or data.get("next")) or url_for("views.dashboard")
    return redirect(dest)


@views.route("/logout", methods=["POST"])
@login_required
def logout():
    with atomic():
        record_audit_event("logout", {"email": current_user.email})
    logout_user()
    session.clear()
    return redirect_with_flash("views.login", "info", "Sesión cerrada correctamente.")
