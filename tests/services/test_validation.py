import pytest

from services.errors import RequestValidationError
from services.list_query import ListQuery
from services.validation import (
    ErrorBag,
    ValidationError,
    parse_bool,
    parse_choice,
    parse_email,
    parse_optional_positive_int,
    parse_positive_int,
    parse_positive_int_list,
    parse_string,
    parse_uuid_list,
)


def test_positive_int_list_splits_commas_and_dedupes():
    assert parse_positive_int_list(["1,2", "2", 3, [4, "1"]]) == [1, 2, 3, 4]


def test_positive_int_list_reports_every_invalid_value():
    with pytest.raises(ValidationError) as exc:
        parse_positive_int_list(["1", "abc", "0", True], field="ids")
    assert exc.value.field == "ids"
    assert exc.value.invalid == ["abc", "0", True]


def test_uuid_list_normalises_case():
    raw = "6F9619FF-8B86-D011-B42D-00C04FC964FF"
    assert parse_uuid_list([raw, raw.lower()]) == [raw.lower()]
    with pytest.raises(ValidationError):
        parse_uuid_list(["not-a-uuid"])


def test_positive_int_bounds():
    assert parse_positive_int("5", max_value=10) == 5
    with pytest.raises(ValidationError):
        parse_positive_int("11", max_value=10)
    with pytest.raises(ValidationError):
        parse_positive_int(True)
    assert parse_optional_positive_int("", default=7) == 7


@pytest.mark.parametrize("raw,expected", [("1", True), ("on", True), ("false", False), ("0", False), (False, False)])
def test_parse_bool(raw, expected):
    assert parse_bool(raw, field="active") is expected


def test_parse_bool_requires_value_without_default():
    with pytest.raises(ValidationError):
        parse_bool(None, field="active")
    assert parse_bool("", field="active", default=True) is True


def test_parse_choice_and_string():
    assert parse_choice("asc", field="dir", choices=("asc", "desc")) == "asc"
    with pytest.raises(ValidationError):
        parse_choice("up", field="dir", choices=("asc", "desc"))
    assert parse_string("  hola ", field="name") == "hola"
    with pytest.raises(ValidationError):
        parse_string("x" * 11, field="name", max_length=10)


def test_parse_email_lowercases():
    assert parse_email(" Ana@Example.COM ") == "ana@example.com"
    with pytest.raises(ValidationError):
        parse_email("ana@localhost")


def test_error_bag_collects_all_fields():
    bag = ErrorBag()
    assert bag.check(parse_positive_int, "x", field="page", fallback=1) == 1
    bag.check(parse_string, None, field="name", required=True)
    assert bag
    with pytest.raises(RequestValidationError) as exc:
        bag.raise_if_any()
    assert set(exc.value.errors) == {"page", "name"}
    assert exc.value.message == "Los datos proporcionados no son válidos."


def test_error_bag_passes_default_to_parser():
    bag = ErrorBag()
    assert bag.check(parse_bool, None, field="active", default=True) is True
    assert bag.check(parse_bool, "", field="active", default=False) is False
    assert bag.check(parse_choice, None, field="dir", choices=("asc", "desc"), default="desc") == "desc"
    assert bag.check(parse_optional_positive_int, None, field="page", default=4) == 4
    assert not bag


def test_error_bag_fallback_only_applies_on_failure():
    bag = ErrorBag()
    assert bag.check(parse_positive_int_list, ["2"], field="ids", fallback=[]) == [2]
    assert bag.check(parse_positive_int_list, ["x"], field="ids", fallback=[]) == []
    assert bag.check(parse_bool, None, field="active") is None
    assert set(bag.errors) == {"ids", "active"}


def test_list_query_is_immutable():
    query = ListQuery(q="adm", filters={"status": "active"})
    with pytest.raises(TypeError):
        query.filters["status"] = "inactive"

    second = query.with_page(3, 50)
    assert (second.page, second.per_page) == (3, 50)
    assert (query.page, query.per_page) == (1, 15)
    assert second.filter("status") == "active"
    assert second.to_dict()["filters"] == {"status": "active"}
