"""Immutable listing query shared by index, export and selected views."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class ListQuery:
    q: Optional[str] = None
    page: int = 1
    per_page: int = 15
    sort: Optional[str] = None
    direction: str = "desc"
    filters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", MappingProxyType(dict(self.filters or {})))

    def with_page(self, page: int, per_page: Optional[int] = None) -> "ListQuery":
        return replace(self, page=page, per_page=per_page or self.per_page, filters=dict(self.filters))

    def filter(self, key: str, default: Any = None) -> Any:
        return self.filters.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "q": self.q,
            "page": self.page,
            "per_page": self.per_page,
            "sort": self.sort,
            "direction": self.direction,
            "filters": dict(self.filters),
        }
