"""Streaming export strategies.

Every exporter receives a lazy, single-pass iterable of row dicts plus an
ordered ``{key: label}`` column mapping and returns a streamed Flask
``Response``. Values are normalised the same way for every format.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from flask import Response, current_app, has_app_context, has_request_context, stream_with_context

from services.errors import DomainActionError

DEFAULT_BOOLEAN_LABELS: Tuple[str, str] = ("Activo", "Inactivo")

Row = Mapping[str, Any]


class Exporter(ABC):
    format: str = ""
    mimetype: str = "application/octet-stream"

    def __init__(self, boolean_labels: Optional[Tuple[str, str]] = None):
        self._boolean_labels = boolean_labels

    @property
    def boolean_labels(self) -> Tuple[str, str]:
        if self._boolean_labels is not None:
            return self._boolean_labels
        if has_app_context():
            labels = current_app.config.get("EXPORT_BOOLEAN_LABELS")
            if labels:
                return tuple(labels)  # type: ignore[return-value]
        return DEFAULT_BOOLEAN_LABELS

    def format_value(self, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, bool):
            yes, no = self.boolean_labels
            return yes if value else no
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (list, tuple, set, frozenset)):
            return ", ".join(str(self.format_value(item)) for item in value)
        return value

    def labels(self, columns: Mapping[str, str]) -> List[str]:
        return [str(label) for label in columns.values()]

    def values(self, row: Row, columns: Mapping[str, str]) -> List[Any]:
        return [self.format_value(row.get(key)) for key in columns]

    def default_filename(self) -> str:
        return f"export.{self.format}"

    def response(self, body: Iterable[Any], filename: Optional[str] = None) -> Response:
        if has_request_context():
            body = stream_with_context(body)
        return Response(
            body,
            mimetype=self.mimetype,
            headers={"Content-Disposition": f'attachment; filename="{filename or self.default_filename()}"'},
        )

    def stream(self, rows: Iterable[Row], columns: Mapping[str, str], filename: Optional[str] = None) -> Response:
        return self.response(self.generate(rows, columns), filename)

    @abstractmethod
    def generate(self, rows: Iterable[Row], columns: Mapping[str, str]) -> Iterator[Any]:
        """Yield encoded chunks of the exported document."""


_REGISTRY: Dict[str, Callable[[], Exporter]] = {}


def register_exporter(fmt: str, factory: Callable[[], Exporter]) -> None:
    _REGISTRY[fmt.lower()] = factory


def available_formats() -> List[str]:
    return sorted(_REGISTRY)


def get_exporter(fmt: str) -> Exporter:
    factory = _REGISTRY.get((fmt or "").strip().lower())
    if factory is None:
        raise DomainActionError(f"Formato de exportación no soportado: {fmt}")
    return factory()
