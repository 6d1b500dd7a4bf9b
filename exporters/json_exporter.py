from __future__ import annotations

import json
from typing import Iterable, Iterator, Mapping

from .base import Exporter, Row


class JsonExporter(Exporter):
    """Array of objects keyed by column label."""

    format = "json"
    mimetype = "application/json"

    def generate(self, rows: Iterable[Row], columns: Mapping[str, str]) -> Iterator[str]:
        labels = self.labels(columns)
        yield "["
        first = True
        for row in rows:
            record = dict(zip(labels, self.values(row, columns)))
            yield ("" if first else ",") + json.dumps(record, ensure_ascii=False, default=str)
            first = False
        yield "]"
