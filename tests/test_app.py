import logging

from sqlalchemy import func, select

from extensions import db
from factories import JSON
from models import Permission, Role, User
from services.permissions import PERMISSION_CATALOG


def test_health_endpoint_and_headers(client):
    resp = client.get("/up", headers={"X-Request-ID": "abc123"})
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"] == "abc123"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_request_id_is_generated(client):
    resp = client.get("/up")
    assert len(resp.headers["X-Request-ID"]) == 32


def test_unknown_route_renders_404_page(client):
    resp = client.get("/nope", headers={"X-Inertia": "true"})
    assert resp.status_code == 404
    assert resp.get_json()["component"] == "errors/404"


def test_seed_commands(app, db_session):  # noqa: ARG001
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed-permissions"])
    assert result.exit_code == 0, result.output
    admin = db.session.execute(select(Role).where(Role.name == "admin")).scalar_one()
    assert len(admin.permissions) == len(PERMISSION_CATALOG)

    result = runner.invoke(args=["seed-admin", "--email", "Root@Example.com", "--password", "secreto123"])
    assert result.exit_code == 0, result.output
    user = db.session.execute(select(User).where(User.email == "root@example.com")).scalar_one()
    assert user.has_role("admin")
    assert user.has_permission("roles.forceDelete")

    result = runner.invoke(args=["seed-demo-roles", "--count", "3", "--seed", "7"])
    assert result.exit_code == 0, result.output
    demo = db.session.execute(select(func.count(Role.id)).where(Role.name.like("Rol demo %"))).scalar()
    assert demo == 3

    # Re-running keeps the catalog unique
    assert runner.invoke(args=["seed-permissions"]).exit_code == 0
    total = db.session.execute(select(func.count(Permission.id)).where(Permission.guard_name == "web")).scalar()
    assert total == len(PERMISSION_CATALOG)


def test_seed_admin_requires_credentials(app, db_session):  # noqa: ARG001
    result = app.test_cli_runner().invoke(args=["seed-admin", "--email", "root@example.com"])
    assert result.exit_code != 0
    assert "ADMIN_PASSWORD" in result.output


def test_unhandled_errors_are_logged_with_traceback(app, monkeypatch, caplog):
    monkeypatch.setitem(app.config, "PROPAGATE_EXCEPTIONS", False)
    monkeypatch.setattr(logging.getLogger("routes.errors"), "handlers", [caplog.handler])

    with app.test_request_context("/", headers=JSON):
        try:
            raise RuntimeError("fallo inesperado")
        except RuntimeError as exc:
            resp = app.handle_exception(exc)

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "server_error"}
    record = next(r for r in caplog.records if r.name == "routes.errors")
    assert record.exc_info[0] is RuntimeError
    assert record.exc_info[2] is not None
