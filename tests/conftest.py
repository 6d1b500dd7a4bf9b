import os
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]

# Isolate all tests to a throwaway instance dir and an in-memory database
TEST_INSTANCE_DIR = ROOT_DIR / ".pytest-instance"
TEST_INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
os.environ["FLASK_ENV"] = "testing"
os.environ["INSTANCE_DIR"] = str(TEST_INSTANCE_DIR)
os.environ["ENABLE_TALISMAN"] = "0"

import pytest  # noqa: E402

from app import create_app  # noqa: E402
from config import TestingConfig  # noqa: E402
from extensions import db  # noqa: E402
from models import User  # noqa: E402
from services.permissions import PERMISSION_CATALOG, sync_permission_catalog  # noqa: E402

from factories import create_role, create_user as make_user  # noqa: E402


@pytest.fixture(scope="session")
def app():
    return create_app(TestingConfig)


@pytest.fixture
def db_session(app):
    with app.app_context():
        db.create_all()
        sync_permission_catalog()
        db.session.commit()
        yield db
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app, db_session):  # noqa: ARG001 - keeps DB initialised for request tests
    return app.test_client()


@pytest.fixture
def create_user(db_session):
    def _create_user(
        *,
        email: str = "user@example.com",
        name: str = "Usuario",
        password: str = "password123",
        is_active: bool = True,
        permissions=(),
    ) -> tuple[User, str]:
        user = make_user(email=email, name=name, password=password, is_active=is_active)
        if permissions:
            create_role(name=f"role-{email}", permissions=permissions, users=[user])
        db.session.commit()
        return user, password

    return _create_user


@pytest.fixture
def login(client):
    def _login(email: str, password: str):
        return client.post("/login", data={"email": email, "password": password})

    return _login


@pytest.fixture
def admin(create_user, login):
    """Signed-in user holding every catalog permission."""
    user, password = create_user(email="admin@example.com", name="Admin", permissions=sorted(PERMISSION_CATALOG))
    resp = login(user.email, password)
    assert resp.status_code == 302
    return user


@pytest.fixture
def get_flashes(client):
    def _get_flashes():
        with client.session_transaction() as sess:
            return list(sess.get("_flashes", []))

    return _get_flashes
