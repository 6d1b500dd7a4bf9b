"""Request parsers turning HTTP input into validated values.

Every parser collects all field errors before raising
``RequestValidationError`` so clients see the full picture at once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple

from flask import current_app, request
from werkzeug.datastructures import MultiDict

from services.list_query import SORT_DIRECTIONS, ListQuery
from services.validation import (
    ErrorBag,
    parse_bool,
    parse_choice,
    parse_optional_positive_int,
    parse_positive_int_list,
    parse_string,
    parse_uuid_list,
)

from .base import request_data

_FILTER_BRACKET = re.compile(r"^filter\[(?P<key>[A-Za-z0-9_]+)\]$")
_FILTER_DOTTED = re.compile(r"^filter\.(?P<key>[A-Za-z0-9_]+)$")

BULK_ACTIONS = ("delete", "restore", "forceDelete", "setActive")

STATUS_FILTER = ("active", "inactive")
TRASHED_FILTER = ("with", "only")


def getlist_param(source: Any, key: str) -> List[Any]:
    """Values for ``key`` or ``key[]`` from query args / form MultiDicts or JSON dicts."""
    if isinstance(source, MultiDict):
        return source.getlist(key) + source.getlist(f"{key}[]")
    value = source.get(key)
    if value is None:
        value = source.get(f"{key}[]")
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


class IndexRequest:
    """Parses listing query-string parameters into a ``ListQuery``.

    Subclasses declare ``allowed_sorts`` and ``filter_rules``; a rule is a
    tuple of accepted values or ``None`` for free text.
    """

    allowed_sorts: ClassVar[Sequence[str]] = ("id", "created_at")
    filter_rules: ClassVar[Mapping[str, Optional[Tuple[str, ...]]]] = {
        "status": STATUS_FILTER,
        "trashed": TRASHED_FILTER,
    }

    @classmethod
    def max_per_page(cls) -> int:
        return int(current_app.config.get("LIST_MAX_PER_PAGE", 100))

    @classmethod
    def default_per_page(cls) -> int:
        return int(current_app.config.get("LIST_DEFAULT_PER_PAGE", 15))

    @classmethod
    def extract_filters(cls, args: MultiDict) -> Dict[str, str]:
        raw: Dict[str, str] = {}
        for key in args.keys():
            match = _FILTER_BRACKET.match(key) or _FILTER_DOTTED.match(key)
            if match:
                raw[match.group("key")] = args.get(key)
        return raw

    @classmethod
    def from_request(cls, args: Optional[MultiDict] = None) -> ListQuery:
        args = request.args if args is None else args
        bag = ErrorBag()

        q = bag.check(parse_string, args.get("q"), field="q", max_length=255)
        page = bag.check(parse_optional_positive_int, args.get("page"), field="page", default=1) or 1
        per_page = bag.check(
            parse_optional_positive_int,
            args.get("perPage", args.get("per_page")),
            field="perPage",
            max_value=cls.max_per_page(),
            default=cls.default_per_page(),
        ) or cls.default_per_page()
        sort = bag.check(parse_choice, args.get("sort"), field="sort", choices=cls.allowed_sorts)
        direction = bag.check(parse_choice, args.get("dir"), field="dir", choices=SORT_DIRECTIONS, default="desc")

        filters: Dict[str, Any] = {}
        for key, value in cls.extract_filters(args).items():
            if key not in cls.filter_rules:
                bag.add(f"filter.{key}", f"El filtro {key} no está permitido.")
                continue
            choices = cls.filter_rules[key]
            if choices is None:
                parsed = bag.check(parse_string, value, field=f"filter.{key}", max_length=255)
            else:
                parsed = bag.check(parse_choice, value, field=f"filter.{key}", choices=choices)
            if parsed is not None:
                filters[key] = parsed

        bag.raise_if_any()
        return ListQuery(
            q=q or None,
            page=page,
            per_page=per_page,
            sort=sort,
            direction=direction or "desc",
            filters=filters,
        )


class RoleIndexRequest(IndexRequest):
    allowed_sorts = ("id", "name", "guard_name", "is_active", "created_at")
    filter_rules = {
        "status": STATUS_FILTER,
        "trashed": TRASHED_FILTER,
        "guard_name": None,
        "permission": None,
    }


class UserIndexRequest(IndexRequest):
    allowed_sorts = ("id", "name", "email", "is_active", "created_at")
    filter_rules = {
        "status": STATUS_FILTER,
        "trashed": TRASHED_FILTER,
        "role": None,
    }


@dataclass(frozen=True)
class BulkCommand:
    action: str
    ids: List[int] = field(default_factory=list)
    uuids: List[str] = field(default_factory=list)
    active: bool = True

    @property
    def empty(self) -> bool:
        return not self.ids and not self.uuids


def parse_bulk_request(actions: Sequence[str] = BULK_ACTIONS) -> BulkCommand:
    data = request_data()
    bag = ErrorBag()
    action = bag.check(parse_choice, data.get("action"), field="action", choices=actions)
    if action is None and "action" not in bag.errors:
        bag.add("action", "El campo action es obligatorio.")
    ids = bag.check(parse_positive_int_list, getlist_param(data, "ids"), field="ids", fallback=[]) or []
    uuids = bag.check(parse_uuid_list, getlist_param(data, "uuids"), field="uuids", fallback=[]) or []
    active = bag.check(parse_bool, data.get("active"), field="active", default=True)
    bag.raise_if_any()
    return BulkCommand(action=action or "", ids=ids, uuids=uuids, active=bool(active))


@dataclass(frozen=True)
class SelectedQuery:
    ids: List[int]
    per_page: int
    page: int = 1


def parse_selected_request(args: Optional[MultiDict] = None) -> SelectedQuery:
    args = request.args if args is None else args
    bag = ErrorBag()
    ids = bag.check(parse_positive_int_list, getlist_param(args, "ids"), field="ids", fallback=[]) or []
    if not ids and "ids" not in bag.errors:
        bag.add("ids", "El campo ids es obligatorio.")
    max_per_page = int(current_app.config.get("SELECTED_MAX_PER_PAGE", 100))
    default_per_page = int(current_app.config.get("LIST_DEFAULT_PER_PAGE", 15))
    per_page = bag.check(
        parse_optional_positive_int,
        args.get("perPage", args.get("per_page")),
        field="perPage",
        max_value=max_per_page,
        default=default_per_page,
    ) or default_per_page
    page = bag.check(parse_optional_positive_int, args.get("page"), field="page", default=1) or 1
    bag.raise_if_any()
    return SelectedQuery(ids=ids, per_page=per_page, page=page)


def parse_export_columns(args: Optional[MultiDict] = None) -> List[str]:
    args = request.args if args is None else args
    columns: List[str] = []
    for raw in getlist_param(args, "columns"):
        for part in str(raw).split(","):
            part = part.strip()
            if part and part not in columns:
                columns.append(part)
    return columns


class ShowRequest:
    """Validates ``with[]`` / ``withCount[]`` against per-resource allow-lists."""

    allowed_relations: ClassVar[Sequence[str]] = ()
    allowed_counts: ClassVar[Sequence[str]] = ()

    @classmethod
    def from_request(cls, args: Optional[MultiDict] = None) -> Tuple[List[str], List[str]]:
        args = request.args if args is None else args
        bag = ErrorBag()
        relations = cls._parse(bag, args, "with", cls.allowed_relations)
        counts = cls._parse(bag, args, "withCount", cls.allowed_counts)
        bag.raise_if_any()
        return relations, counts

    @staticmethod
    def _parse(bag: ErrorBag, args: MultiDict, key: str, allowed: Sequence[str]) -> List[str]:
        out: List[str] = []
        for raw in getlist_param(args, key):
            for part in str(raw).split(","):
                part = part.strip()
                if not part:
                    continue
                if part not in allowed:
                    bag.add(key, f"La relación {part} no está permitida.")
                elif part not in out:
                    out.append(part)
        return out


class RoleShowRequest(ShowRequest):
    allowed_relations = ("permissions", "users")
    allowed_counts = ("permissions", "users")


class UserShowRequest(ShowRequest):
    allowed_relations = ("roles",)
    allowed_counts = ("roles",)
