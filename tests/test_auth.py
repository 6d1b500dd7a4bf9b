from sqlalchemy import select

from extensions import db
from factories import INERTIA, JSON
from models import AuditLog
from routes.auth import INVALID_CREDENTIALS


def test_login_page_renders_component(client):
    resp = client.get("/login?next=/roles", headers=INERTIA)
    page = resp.get_json()
    assert page["component"] == "auth/login"
    assert page["props"]["next"] == "/roles"
    assert page["props"]["auth"]["user"] is None


def test_successful_login_records_audit_and_redirects(client, create_user, login):
    user, password = create_user(email="ana@example.com")

    resp = login("ANA@example.com", password)

    assert resp.status_code == 302
    assert resp.headers["Location"] == "/"
    assert user.last_login_at is not None
    actions = db.session.execute(select(AuditLog.action).where(AuditLog.user_id == user.id)).scalars().all()
    assert actions == ["login"]
    assert client.get("/", headers=INERTIA).get_json()["component"] == "dashboard"


def test_login_follows_safe_next_only(client, create_user):
    user, password = create_user(email="ana@example.com")

    resp = client.post("/login?next=/roles", data={"email": user.email, "password": password})
    assert resp.headers["Location"] == "/roles"

    resp = client.post("/login?next=//evil.example.com", data={"email": user.email, "password": password})
    assert resp.headers["Location"] == "/"


def test_wrong_password_keeps_user_out(client, create_user, login):
    user, _ = create_user(email="ana@example.com")

    resp = login(user.email, "incorrecta")

    assert resp.status_code == 302
    assert resp.headers["Location"] == "/login"
    props = client.get("/login", headers=INERTIA).get_json()["props"]
    assert props["errors"] == {"email": [INVALID_CREDENTIALS]}
    assert props["auth"]["user"] is None


def test_inactive_and_deleted_users_cannot_sign_in(client, create_user, login):
    inactive, password = create_user(email="off@example.com", is_active=False)
    assert login(inactive.email, password).headers["Location"] == "/login"

    deleted, password = create_user(email="gone@example.com")
    deleted.soft_delete()
    db.session.commit()
    assert login(deleted.email, password).headers["Location"] == "/login"


def test_login_validates_input(client):
    resp = client.post("/login", json={"email": "no-es-email"})
    assert resp.status_code == 422
    assert set(resp.get_json()["errors"]) == {"email", "password"}


def test_logout_clears_session(client, create_user, login, get_flashes):
    user, password = create_user(email="ana@example.com")
    login(user.email, password)

    resp = client.post("/logout")

    assert resp.status_code == 302
    assert resp.headers["Location"] == "/login"
    assert ("info", "Sesión cerrada correctamente.") in get_flashes()
    assert client.get("/", headers=JSON).status_code == 401
