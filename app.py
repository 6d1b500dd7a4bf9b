"""Flask application factory, CLI entry points, and database bootstrap."""

import json
import logging
from logging.handlers import RotatingFileHandler
import os
import sqlite3
import uuid
from datetime import date, datetime
from pathlib import Path

import click
from flask import Flask, flash, g, has_request_context, jsonify, redirect, request, url_for
from flask.json.provider import DefaultJSONProvider
from flask_compress import Compress
from flask_talisman import Talisman
from sqlalchemy import event
from sqlalchemy.engine import Engine

from dotenv import load_dotenv; load_dotenv()

from config import INSTANCE_DIR as CONFIG_INSTANCE_DIR, select_config
from extensions import db, migrate, cache, csrf, limiter, login_manager, generate_csrf


class RequestIdFilter(logging.Filter):
    """Inject request-scoped metadata into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "n/a")
            record.path = request.path
            record.method = request.method
        else:
            record.request_id = getattr(record, "request_id", "startup")
            record.path = getattr(record, "path", "")
            record.method = getattr(record, "method", "")
        return True


class JsonRequestFormatter(logging.Formatter):
    """Simple JSON formatter for logfmt-friendly ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "n/a"),
            "path": getattr(record, "path", ""),
            "method": getattr(record, "method", ""),
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


class IsoJSONProvider(DefaultJSONProvider):
    """Serialise dates as ISO-8601 instead of HTTP dates."""

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def _configure_logging(app: Flask) -> None:
    """Configure structured logging with request IDs."""
    stream_handler = logging.StreamHandler()
    stream_handler.addFilter(RequestIdFilter())
    stream_handler.setFormatter(JsonRequestFormatter())
    stream_handler.setLevel(logging.INFO)

    handlers = [stream_handler]

    if not app.testing:
        try:
            logs_dir = Path(app.instance_path) / "logs"
            logs_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                logs_dir / "app.log",
                maxBytes=5 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.addFilter(RequestIdFilter())
            file_handler.setFormatter(JsonRequestFormatter())
            file_handler.setLevel(logging.INFO)
            handlers.append(file_handler)
        except OSError as exc:
            app.logger.warning("Falling back to stream-only logging (file handler unavailable): %s", exc)

    app.logger.handlers = handlers
    app.logger.setLevel(logging.INFO)
    # Module loggers (services.*, routes.*, ...) share the app handlers
    for name in ("werkzeug", "services", "routes", "repositories", "exporters"):
        logging.getLogger(name).handlers = handlers
        logging.getLogger(name).setLevel(logging.INFO)
        logging.getLogger(name).propagate = False


def _configure_login_manager(app: Flask) -> None:
    """Bind Flask-Login to the users table."""
    login_manager.init_app(app)
    login_manager.login_view = "views.login"
    login_manager.login_message_category = "warning"
    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def _load_user(user_id: str):
        from models import User

        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.can_sign_in:
            return None
        return user

    @login_manager.unauthorized_handler
    def _unauthorized():
        from routes.base import wants_json

        if wants_json():
            return jsonify({"error": "authentication_required"}), 401
        flash("Inicie sesión para continuar.", "warning")
        return redirect(url_for("views.login", next=request.full_path.rstrip("?")))


# ---------------------------------------------------------------------------
# Extension bootstrap helpers
# ---------------------------------------------------------------------------

def _init_limiter(app: Flask) -> None:
    default_limits = app.config.get("RATELIMIT_DEFAULT")
    if isinstance(default_limits, str):
        default_limits = [default_limits]
    app.config.setdefault("RATELIMIT_DEFAULTS", ";".join(default_limits or []))
    limiter.init_app(app)


def _init_talisman(app: Flask) -> None:
    if not app.config.get("ENABLE_TALISMAN", True):
        return
    Talisman(
        app,
        content_security_policy=app.config.get("CONTENT_SECURITY_POLICY"),
        force_https=app.config.get("TALISMAN_FORCE_HTTPS", not app.debug),
        session_cookie_secure=app.config.get("SESSION_COOKIE_SECURE", True),
        session_cookie_samesite=app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
    )


def create_app(config_object=None):
    """Create, configure, and return a fully-initialised Flask app."""
    app = Flask(
        __name__,
        instance_path=str(CONFIG_INSTANCE_DIR),
        instance_relative_config=False,
    )
    app.config.from_object(config_object or select_config())
    app.json = IsoJSONProvider(app)
    _configure_logging(app)
    os.makedirs(app.instance_path, exist_ok=True)

    # --- Core extensions ---
    db.init_app(app)
    migrate.init_app(app, db, render_as_batch=True)
    cache.init_app(app)
    _configure_login_manager(app)
    csrf.init_app(app)
    app.jinja_env.globals["csrf_token"] = generate_csrf
    Compress(app)
    _init_limiter(app)
    _init_talisman(app)

    # Import models after db is bound
    import models  # noqa: F401

    # Blueprints
    from routes import register_error_handlers, views
    app.register_blueprint(views)
    register_error_handlers(app)

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    @app.after_request
    def attach_request_id(resp):
        rid = getattr(g, "request_id", None)
        if rid:
            resp.headers.setdefault("X-Request-ID", rid)
        return resp

    @app.after_request
    def xsrf_cookie(resp):
        """Expose the CSRF token to the front end as the XSRF-TOKEN cookie."""
        if app.config.get("WTF_CSRF_ENABLED", True):
            resp.set_cookie(
                "XSRF-TOKEN",
                generate_csrf(),
                samesite=app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
                secure=app.config.get("SESSION_COOKIE_SECURE", False),
            )
        return resp

    @app.after_request
    def security_headers(resp):
        """Attach a minimal set of security-related HTTP headers to each response."""
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        return resp

    _register_cli(app)
    return app


# ------------------------------------------------------------------
# CLI COMMANDS
# ------------------------------------------------------------------

def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-permissions")
    def seed_permissions_command():
        """Create the permission catalog and the admin role."""
        from seeds.seed_permissions import seed_permissions

        role = seed_permissions()
        click.echo(f"Role '{role.name}' holds {len(role.permissions)} permission(s).")

    @app.cli.command("seed-admin")
    @click.option("--email", default=None, help="Defaults to ADMIN_EMAIL.")
    @click.option("--password", default=None, help="Defaults to ADMIN_PASSWORD.")
    def seed_admin_command(email, password):
        """Create or refresh the admin user."""
        from seeds.seed_permissions import seed_admin_user

        try:
            user = seed_admin_user(email, password)
        except ValueError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"Admin user {user.email} ready.")

    @app.cli.command("seed-demo-roles")
    @click.option("--count", default=20, show_default=True, type=click.IntRange(min=1))
    @click.option("--seed", default=None, type=int, help="Random seed for reproducible data.")
    def seed_demo_roles_command(count, seed):
        """Insert demo roles with random permissions."""
        from seeds.seed_permissions import seed_demo_roles

        created = seed_demo_roles(count, seed=seed)
        click.echo(f"Created {created} demo role(s).")


# Single SQLite PRAGMA hook (avoid duplicate listeners)
_SQLITE_PRAGMA_STATEMENTS = (
    "PRAGMA foreign_keys=ON;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA temp_store=MEMORY;",
)


def _apply_sqlite_pragmas(dbapi_connection) -> None:
    """Execute the configured PRAGMAs if this is a SQLite connection."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cur = dbapi_connection.cursor()
    try:
        for statement in _SQLITE_PRAGMA_STATEMENTS:
            cur.execute(statement)
    finally:
        cur.close()


@event.listens_for(Engine, "connect")
def _sqlite_pragmas(dbapi_connection, _) -> None:
    """Apply PRAGMAs each time SQLite opens a connection."""
    _apply_sqlite_pragmas(dbapi_connection)


if __name__ == "__main__":
    _app = create_app()
    _app.run(host="127.0.0.1", port=5000, debug=True)
