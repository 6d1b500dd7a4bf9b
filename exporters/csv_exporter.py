from __future__ import annotations

import csv
from io import StringIO
from typing import Iterable, Iterator, Mapping

from .base import Exporter, Row


class CsvExporter(Exporter):
    format = "csv"
    mimetype = "text/csv; charset=utf-8"

    def generate(self, rows: Iterable[Row], columns: Mapping[str, str]) -> Iterator[str]:
        si = StringIO()
        writer = csv.writer(si)

        def _drain() -> str:
            out = si.getvalue()
            si.seek(0)
            si.truncate(0)
            return out

        # BOM so spreadsheet apps pick UTF-8
        si.write("\ufeff")
        writer.writerow(self.labels(columns))
        yield _drain()
        for row in rows:
            writer.writerow(self.values(row, columns))
            yield _drain()
