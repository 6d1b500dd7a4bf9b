from sqlalchemy import select

from extensions import db
from factories import INERTIA, JSON, create_role, create_user, permissions_named
from models import Role


def test_guests_are_sent_to_login(client):
    resp = client.get("/roles")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]

    resp = client.get("/roles", headers=JSON)
    assert resp.status_code == 401


def test_missing_permission_is_forbidden(client, create_user, login):
    user, password = create_user(email="viewer@example.com", permissions=["users.view"])
    login(user.email, password)

    assert client.get("/roles").status_code == 403
    assert client.get("/roles", headers=JSON).get_json() == {"error": "forbidden"}
    assert client.post("/roles/bulk", data={"action": "delete", "ids": "1"}).status_code == 403


def test_index_renders_page_object(client, admin):
    create_role(name="editor", users=[create_user()])
    db.session.commit()

    resp = client.get("/roles?sort=name&dir=asc&filter[status]=active", headers=INERTIA)

    assert resp.status_code == 200
    assert resp.headers["X-Inertia"] == "true"
    page = resp.get_json()
    assert page["component"] == "roles/index"
    props = page["props"]
    assert [row["name"] for row in props["rows"]] == ["editor", "role-admin@example.com"]
    assert props["rows"][0]["users_count"] == 1
    assert props["meta"]["total"] == 2
    assert props["filters"]["status"] == "active"
    assert props["stats"]["total"] == 2
    assert props["auth"]["user"]["email"] == admin.email
    assert "T" in props["rows"][0]["created_at"]


def test_index_html_shell_embeds_page(client, admin):  # noqa: ARG001
    resp = client.get("/roles")
    assert resp.status_code == 200
    assert b'id="app"' in resp.data
    assert b"roles/index" in resp.data


def test_partial_reload_only_sends_requested_props(client, admin):  # noqa: ARG001
    headers = {**INERTIA, "X-Inertia-Partial-Component": "roles/index", "X-Inertia-Partial-Data": "rows"}
    props = client.get("/roles", headers=headers).get_json()["props"]
    assert set(props) == {"rows", "flash", "errors"}


def test_invalid_query_returns_422_for_json_clients(client, admin):  # noqa: ARG001
    resp = client.get("/roles?perPage=1000&filter[foo]=1", headers=JSON)
    assert resp.status_code == 422
    assert set(resp.get_json()["errors"]) == {"perPage", "filter.foo"}


def test_export_csv_and_fallback_format(client, admin):  # noqa: ARG001
    create_role(name="exportable")
    db.session.commit()

    resp = client.get("/roles/export?format=docx&q=export")
    assert resp.status_code == 200
    assert resp.mimetype == "text/csv"
    assert "roles_export_" in resp.headers["Content-Disposition"]
    body = resp.get_data(as_text=True)
    assert "exportable" in body
    assert "role-admin@example.com" not in body

    resp = client.get("/roles/export?format=json&columns=name")
    assert resp.mimetype == "application/json"
    assert {"Nombre": "exportable"} in resp.get_json()


def test_store_creates_role_with_permissions(client, admin, get_flashes):  # noqa: ARG001
    ids = [str(p.id) for p in permissions_named(["users.view", "users.create"])]

    resp = client.post("/roles", data={"name": "soporte", "permissions_ids[]": ids})

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/roles")
    role = db.session.execute(select(Role).where(Role.name == "soporte")).scalar_one()
    assert sorted(role.permission_names) == ["users.create", "users.view"]
    assert ("success", "El rol 'soporte' ha sido creado correctamente.") in get_flashes()


def test_store_rejects_duplicate_names(client, admin):  # noqa: ARG001
    create_role(name="soporte")
    db.session.commit()

    resp = client.post("/roles", json={"name": "Soporte"})
    assert resp.status_code == 422
    assert "name" in resp.get_json()["errors"]

    resp = client.post("/roles", data={"name": ""})
    assert resp.status_code == 302
    with client.session_transaction() as sess:
        assert "name" in sess["errors"]


def test_show_loads_requested_relations(client, admin):  # noqa: ARG001
    role = create_role(name="lector", permissions=["roles.view"], users=[create_user(name="Ana")])
    db.session.commit()

    resp = client.get(f"/roles/{role.id}?with[]=users&withCount[]=users", headers=INERTIA)
    item = resp.get_json()["props"]["item"]
    assert item["users"][0]["name"] == "Ana"
    assert item["users_count"] == 1
    assert "permissions" not in item

    assert client.get(f"/roles/{role.id}?with[]=secrets", headers=JSON).status_code == 422
    assert client.get("/roles/999999", headers=JSON).status_code == 404


def test_update_and_set_active(client, admin, get_flashes):  # noqa: ARG001
    role = create_role(name="lector")
    db.session.commit()

    resp = client.patch(f"/roles/{role.id}", data={"name": "lector-2", "is_active": "1"})
    assert resp.status_code == 302
    assert role.name == "lector-2"

    resp = client.patch(f"/roles/{role.id}/active", data={"active": "0"})
    assert resp.status_code == 302
    assert role.is_active is False
    assert ("success", "El rol 'lector-2' ha sido desactivado correctamente.") in get_flashes()


def test_last_critical_role_survives_delete_and_deactivate(client, admin, get_flashes):
    admin_role = admin.roles[0]

    resp = client.delete(f"/roles/{admin_role.id}")
    assert resp.status_code == 302
    assert admin_role.deleted_at is None
    assert any(cat == "error" and "último rol activo" in msg for cat, msg in get_flashes())

    resp = client.patch(f"/roles/{admin_role.id}/active", json={"active": False})
    assert resp.status_code == 409
    assert admin_role.is_active is True


def test_destroy_soft_deletes(client, admin, get_flashes):  # noqa: ARG001
    role = create_role(name="temporal")
    db.session.commit()

    resp = client.delete(f"/roles/{role.id}")
    assert resp.status_code == 302
    assert role.deleted_at is not None
    assert ("success", "El rol 'temporal' ha sido eliminado correctamente.") in get_flashes()


def test_bulk_delete_reports_skipped_roles(client, admin, get_flashes):
    a = create_role()
    b = create_role()
    db.session.commit()

    client.post("/roles/bulk", data={"action": "delete", "ids[]": [str(a.id), str(b.id)]})
    assert ("success", "Se eliminaron 2 rol(es) correctamente.") in get_flashes()

    c = create_role()
    db.session.commit()
    client.post("/roles/bulk", json={"action": "delete", "ids": [c.id, admin.roles[0].id]})
    assert (
        "warning",
        "Se eliminaron 1 rol(es). Se omitieron 1 rol(es) por validaciones de eliminación.",
    ) in get_flashes()


def test_bulk_set_active_and_restore(client, admin, get_flashes):  # noqa: ARG001
    a = create_role()
    b = create_role(is_active=False)
    db.session.commit()

    client.post("/roles/bulk", data={"action": "setActive", "active": "1", "ids": str(a.id)})
    assert (
        "info",
        "No se realizó ningún cambio. Todos los roles ya estaban en el estado solicitado.",
    ) in get_flashes()

    client.post("/roles/bulk", data={"action": "setActive", "active": "1", "ids": f"{a.id},{b.id}"})
    assert ("success", "Se activaron 1 rol(es) correctamente.") in get_flashes()

    a.soft_delete()
    db.session.commit()
    client.post("/roles/bulk", json={"action": "restore", "uuids": [a.uuid]})
    assert ("success", "1 registro(s) restaurados exitosamente") in get_flashes()
    assert a.deleted_at is None


def test_bulk_without_targets(client, admin, get_flashes):  # noqa: ARG001
    resp = client.post("/roles/bulk", data={"action": "delete"})
    assert resp.status_code == 302
    assert ("error", "Se requieren IDs o UUIDs para la operación") in get_flashes()


def test_selected_lists_ids_newest_first(client, admin):  # noqa: ARG001
    a = create_role()
    b = create_role()
    db.session.commit()

    props = client.get(f"/roles/selected?ids={a.id},{b.id}&sort=id&dir=asc", headers=INERTIA).get_json()["props"]
    assert [row["id"] for row in props["rows"]] == [b.id, a.id]
    assert client.get("/roles/selected", headers=JSON).status_code == 422
