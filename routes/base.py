"""Shared blueprint and page-rendering helpers for RoleDesk routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import (
    Blueprint,
    current_app,
    flash,
    g,
    get_flashed_messages,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_login import current_user, login_required

views = Blueprint("views", __name__)

FLASH_CATEGORIES = ("success", "error", "warning", "info")
# Props a partial reload always receives
ALWAYS_SHARED = ("flash", "errors")


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def is_inertia_request() -> bool:
    return bool(request.headers.get("X-Inertia"))


def wants_json() -> bool:
    """True for API-style clients; page visits (Inertia or browser) get redirects."""
    if is_inertia_request():
        return False
    if request.is_json or request.path.startswith("/api/"):
        return True
    return request.accept_mimetypes.best == "application/json"


def request_data() -> Dict[str, Any]:
    """Merged view of JSON body or form fields; list fields keep every value."""
    if request.is_json:
        payload = request.get_json(silent=True)
        return dict(payload) if isinstance(payload, dict) else {}
    data: Dict[str, Any] = {}
    for key in request.form.keys():
        values = request.form.getlist(key)
        clean = key[:-2] if key.endswith("[]") else key
        data[clean] = values if key.endswith("[]") or len(values) > 1 else values[0]
    return data


# ---------------------------------------------------------------------------
# Page objects
# ---------------------------------------------------------------------------

def _auth_user() -> Optional[Dict[str, Any]]:
    if not current_user or not getattr(current_user, "is_authenticated", False):
        return None
    return {"id": current_user.id, "uuid": current_user.uuid, "name": current_user.name, "email": current_user.email}


def shared_props() -> Dict[str, Any]:
    flashes: Dict[str, Optional[str]] = {category: None for category in FLASH_CATEGORIES}
    for category, message in get_flashed_messages(with_categories=True):
        flashes[category] = message
    return {
        "auth": {"user": _auth_user()},
        "flash": flashes,
        "errors": session.pop("errors", {}),
        "requestId": getattr(g, "request_id", None),
    }


def _partial_keys(component: str) -> Optional[set[str]]:
    if request.headers.get("X-Inertia-Partial-Component") != component:
        return None
    raw = request.headers.get("X-Inertia-Partial-Data") or ""
    keys = {part.strip() for part in raw.split(",") if part.strip()}
    return keys or None


def render_page(component: str, props: Optional[Dict[str, Any]] = None, *, status: int = 200):
    """Render an Inertia-style page object as JSON or inside the HTML shell."""
    page_props = {**shared_props(), **(props or {})}
    only = _partial_keys(component)
    if only is not None:
        page_props = {key: value for key, value in page_props.items() if key in only or key in ALWAYS_SHARED}
    page = {
        "component": component,
        "props": page_props,
        "url": request.full_path.rstrip("?"),
        "version": current_app.config.get("ASSET_VERSION"),
    }
    if is_inertia_request():
        resp = jsonify(page)
        resp.status_code = status
        resp.headers["X-Inertia"] = "true"
        resp.headers["Vary"] = "X-Inertia"
        return resp
    return render_template("app.html", page=page), status


def redirect_with_flash(endpoint: str, category: str, message: Optional[str] = None, **values: Any):
    if message:
        flash(message, category)
    return redirect(url_for(endpoint, **values))


def redirect_back(category: Optional[str] = None, message: Optional[str] = None):
    if category and message:
        flash(message, category)
    return redirect(request.referrer or url_for("views.dashboard"))


# ---------------------------------------------------------------------------
# Generic pages
# ---------------------------------------------------------------------------

@views.route("/")
@login_required
def dashboard():
    return render_page("dashboard")


@views.route("/up")
def health():
    return jsonify({"status": "ok"})


__all__ = [
    "views",
    "is_inertia_request",
    "wants_json",
    "request_data",
    "render_page",
    "redirect_with_flash",
    "redirect_back",
    "shared_props",
]
