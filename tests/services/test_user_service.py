import pytest

from extensions import db
from factories import create_role, create_user
from services.errors import DomainActionError
from services.list_query import ListQuery
from services.user_service import SELF_DEACTIVATE_MESSAGE, SELF_DELETE_MESSAGE, UserService


@pytest.fixture
def actor(db_session):  # noqa: ARG001
    user = create_user(name="Actor")
    db.session.commit()
    return user


@pytest.fixture
def service(actor):
    return UserService(actor_id=actor.id)


def test_create_hashes_password_and_assigns_roles(service):
    role = create_role(name="lector")
    trashed = create_role(name="viejo")
    trashed.soft_delete()
    db.session.commit()

    user = service.create(
        {"name": "Ana", "email": "ana@example.com", "password": "secreto123", "roles_ids": [role.id, trashed.id]}
    )

    assert user.check_password("secreto123")
    assert [r.name for r in user.roles] == ["lector"]


def test_role_changes_refresh_permissions(service):
    role = create_role(name="lector", permissions=["users.view"])
    db.session.commit()
    user = service.create({"name": "Ana", "email": "ana@example.com", "password": "secreto123"})
    assert not user.has_permission("users.view")

    service.update(user, {"roles_ids": [role.id]})
    assert user.has_permission("users.view")

    role.is_active = False
    db.session.commit()
    assert not user.has_permission("users.view")


def test_actor_cannot_delete_or_deactivate_itself(service, actor):
    with pytest.raises(DomainActionError) as exc:
        service.delete(actor.id)
    assert exc.value.message == SELF_DELETE_MESSAGE

    with pytest.raises(DomainActionError):
        service.force_delete(actor.uuid)

    with pytest.raises(DomainActionError) as exc:
        service.set_active(actor, False)
    assert exc.value.message == SELF_DEACTIVATE_MESSAGE

    assert service.set_active(actor, True).is_active is True
    assert actor.deleted_at is None


def test_bulk_operations_refuse_the_actor(service, actor):
    other = create_user()
    db.session.commit()

    with pytest.raises(DomainActionError):
        service.bulk_delete_by_ids([other.id, actor.id])
    with pytest.raises(DomainActionError):
        service.bulk_delete_by_uuids([actor.uuid])
    with pytest.raises(DomainActionError):
        service.bulk_set_active_by_ids([actor.id], False)
    assert other.deleted_at is None

    assert service.bulk_set_active_by_ids([actor.id, other.id], True) == 0
    assert service.bulk_delete_by_ids([other.id]) == 1


def test_other_users_can_be_managed(service):
    other = create_user()
    db.session.commit()

    assert service.set_active(other.id, False).is_active is False
    assert service.delete(other.id) is True
    assert service.restore(other.id) is True


def test_rows_include_role_names(service):
    role = create_role(name="lector")
    create_user(name="Zoe", roles=[role])
    db.session.commit()

    result = service.list(ListQuery(sort="name", direction="desc"), ("roles",), ("roles",))

    row = result["rows"][0]
    assert row["name"] == "Zoe"
    assert row["roles"] == ["lector"]
    assert row["roles_count"] == 1
    assert "password_hash" not in row
