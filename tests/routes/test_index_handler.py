import pytest
from flask import get_flashed_messages

from routes.index_handler import (
    BULK_FAILED_MESSAGE,
    EXPORT_FAILED_MESSAGE,
    IndexHandler,
    ResourceConfig,
    bulk_success_message,
)
from routes.requests import BulkCommand, RoleIndexRequest
from services.authz import Resource
from services.errors import DomainActionError


class RecordingService:
    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        if not name.startswith("bulk_"):
            raise AttributeError(name)

        def _record(targets, *args):
            self.calls.append((name, list(targets), args))
            return len(targets)

        return _record


@pytest.fixture
def handler():
    service = RecordingService()
    config = ResourceConfig(
        resource=Resource.ROLES,
        view="roles/index",
        index_endpoint="views.roles_index",
        request_class=RoleIndexRequest,
        export_formats=("csv", "xlsx"),
    )
    return IndexHandler(lambda: service, config), service


def test_export_format_falls_back_to_default(app, handler):
    index_handler, _ = handler
    with app.app_context():
        assert index_handler.export_format("XLSX") == "xlsx"
        assert index_handler.export_format("pdf") == "csv"
        assert index_handler.export_format(None) == "csv"


def test_dispatch_bulk_sums_ids_and_uuids(handler):
    index_handler, service = handler
    command = BulkCommand(action="setActive", ids=[1, 2], uuids=["u-1"], active=False)

    assert index_handler.dispatch_bulk(command) == 3
    assert service.calls == [
        ("bulk_set_active_by_ids", [1, 2], (False,)),
        ("bulk_set_active_by_uuids", ["u-1"], (False,)),
    ]


def test_dispatch_bulk_routes_each_action(handler):
    index_handler, service = handler
    for action in ("delete", "restore", "forceDelete"):
        index_handler.dispatch_bulk(BulkCommand(action=action, ids=[5]))
    assert [name for name, _, _ in service.calls] == [
        "bulk_delete_by_ids",
        "bulk_delete_by_uuids",
        "bulk_restore_by_ids",
        "bulk_restore_by_uuids",
        "bulk_force_delete_by_ids",
        "bulk_force_delete_by_uuids",
    ]
    with pytest.raises(ValueError):
        index_handler.dispatch_bulk(BulkCommand(action="truncate", ids=[1]))


@pytest.mark.parametrize(
    "command,expected",
    [
        (BulkCommand(action="delete"), "2 registro(s) eliminados exitosamente"),
        (BulkCommand(action="restore"), "2 registro(s) restaurados exitosamente"),
        (BulkCommand(action="forceDelete"), "2 registro(s) eliminados permanentemente exitosamente"),
        (BulkCommand(action="setActive", active=False), "2 registro(s) desactivados exitosamente"),
    ],
)
def test_bulk_success_message(command, expected):
    assert bulk_success_message(command, 2) == expected


class FailingService:
    def __init__(self, error):
        self.error = error
        self.calls = []

    def _raise(self, name, *args, **kwargs):
        self.calls.append(name)
        raise self.error

    def bulk_delete_by_ids(self, ids):
        self._raise("bulk_delete_by_ids", ids)

    def bulk_delete_by_uuids(self, uuids):
        self._raise("bulk_delete_by_uuids", uuids)

    def export(self, query, fmt, columns=None):
        self._raise("export", query, fmt, columns=columns)


@pytest.fixture
def failing_handler(monkeypatch):
    monkeypatch.setattr("routes.index_handler.authorize", lambda ability, resource: None)

    def _build(error):
        service = FailingService(error)
        config = ResourceConfig(
            resource=Resource.ROLES,
            view="roles/index",
            index_endpoint="views.roles_index",
            request_class=RoleIndexRequest,
        )
        return IndexHandler(lambda: service, config), service

    return _build


@pytest.mark.parametrize(
    "error,expected",
    [
        (DomainActionError("El rol está protegido."), "El rol está protegido."),
        (RuntimeError("database is locked"), BULK_FAILED_MESSAGE),
    ],
)
def test_bulk_failures_flash_domain_message_or_generic_text(app, failing_handler, error, expected):
    index_handler, service = failing_handler(error)

    with app.test_request_context("/roles/bulk", method="POST"):
        resp = index_handler.bulk(BulkCommand(action="delete", ids=[1]))
        flashes = get_flashed_messages(with_categories=True)

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/roles")
    assert flashes == [("error", expected)]
    assert all("database is locked" not in message for _, message in flashes)
    assert service.calls == ["bulk_delete_by_ids"]


@pytest.mark.parametrize(
    "error,expected",
    [
        (DomainActionError("Formato de exportación no soportado: xml"), "Formato de exportación no soportado: xml"),
        (RuntimeError("disk full at /tmp/spool"), EXPORT_FAILED_MESSAGE),
    ],
)
def test_export_failures_flash_domain_message_or_generic_text(app, failing_handler, error, expected):
    index_handler, service = failing_handler(error)

    with app.test_request_context("/roles/export?format=csv"):
        resp = index_handler.export()
        flashes = get_flashed_messages(with_categories=True)

    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/roles")
    assert flashes == [("error", expected)]
    assert all("/tmp/spool" not in message for _, message in flashes)
    assert service.calls == ["export"]
