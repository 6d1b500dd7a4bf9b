import pytest
from werkzeug.datastructures import MultiDict

from routes.requests import (
    RoleIndexRequest,
    RoleShowRequest,
    UserIndexRequest,
    getlist_param,
    parse_bulk_request,
    parse_export_columns,
    parse_selected_request,
)
from services.errors import RequestValidationError


def test_index_request_builds_list_query(app):
    args = MultiDict(
        {
            "q": " admin ",
            "page": "2",
            "perPage": "5",
            "sort": "name",
            "dir": "asc",
            "filter[status]": "active",
            "filter.guard_name": "web",
        }
    )
    with app.test_request_context():
        query = RoleIndexRequest.from_request(args)

    assert (query.q, query.page, query.per_page, query.sort, query.direction) == ("admin", 2, 5, "name", "asc")
    assert dict(query.filters) == {"status": "active", "guard_name": "web"}


def test_index_request_defaults(app):
    with app.test_request_context("/roles"):
        query = RoleIndexRequest.from_request()
    assert (query.q, query.page, query.per_page, query.sort, query.direction) == (None, 1, 15, None, "desc")
    assert dict(query.filters) == {}


def test_index_request_reports_every_invalid_parameter(app):
    args = MultiDict({"perPage": "1000", "sort": "password", "filter[role]": "admin", "filter[status]": "maybe"})
    with app.test_request_context():
        with pytest.raises(RequestValidationError) as exc:
            RoleIndexRequest.from_request(args)
    assert set(exc.value.errors) == {"perPage", "sort", "filter.role", "filter.status"}
    assert exc.value.errors["filter.role"] == ["El filtro role no está permitido."]


def test_user_index_request_accepts_role_filter(app):
    with app.test_request_context():
        query = UserIndexRequest.from_request(MultiDict({"filter[role]": "admin", "per_page": "20"}))
    assert query.filter("role") == "admin"
    assert query.per_page == 20


def test_bulk_request_from_json(app):
    uid = "6f9619ff-8b86-d011-b42d-00c04fc964ff"
    with app.test_request_context(method="POST", json={"action": "setActive", "ids": [1, "2,3"], "uuids": [uid], "active": "0"}):
        command = parse_bulk_request()
    assert command.action == "setActive"
    assert command.ids == [1, 2, 3]
    assert command.uuids == [uid]
    assert command.active is False
    assert not command.empty


def test_bulk_request_from_form_brackets(app):
    with app.test_request_context(method="POST", data={"action": "delete", "ids[]": ["4", "5"]}):
        command = parse_bulk_request()
    assert command.ids == [4, 5]
    assert command.active is True


def test_bulk_request_requires_known_action(app):
    with app.test_request_context(method="POST", json={"ids": ["x"]}):
        with pytest.raises(RequestValidationError) as exc:
            parse_bulk_request()
    assert set(exc.value.errors) == {"action", "ids"}

    with app.test_request_context(method="POST", json={"action": "truncate"}):
        with pytest.raises(RequestValidationError):
            parse_bulk_request()


def test_selected_request_requires_ids_and_caps_page_size(app):
    with app.test_request_context():
        selection = parse_selected_request(MultiDict([("ids[]", "3"), ("ids[]", "1"), ("perPage", "2")]))
        assert (selection.ids, selection.per_page, selection.page) == ([3, 1], 2, 1)

        with pytest.raises(RequestValidationError) as exc:
            parse_selected_request(MultiDict({"perPage": "500"}))
    assert set(exc.value.errors) == {"ids", "perPage"}


def test_export_columns_and_show_relations(app):
    with app.test_request_context():
        assert parse_export_columns(MultiDict([("columns", "name,email"), ("columns[]", "name")])) == ["name", "email"]
        assert RoleShowRequest.from_request(MultiDict([("with[]", "users"), ("withCount", "users,permissions")])) == (
            ["users"],
            ["users", "permissions"],
        )
        with pytest.raises(RequestValidationError):
            RoleShowRequest.from_request(MultiDict({"with[]": "secrets"}))


def test_getlist_param_handles_dicts_and_multidicts():
    assert getlist_param({"ids[]": [1, 2]}, "ids") == [1, 2]
    assert getlist_param({"ids": 7}, "ids") == [7]
    assert getlist_param(MultiDict([("ids", "1"), ("ids[]", "2")]), "ids") == ["1", "2"]
    assert getlist_param({}, "ids") == []
