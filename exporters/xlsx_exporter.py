from __future__ import annotations

import os
import tempfile
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Mapping

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Font

from .base import Exporter, Row

CHUNK_SIZE = 64 * 1024


class XlsxExporter(Exporter):
    format = "xlsx"
    mimetype = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    sheet_title = "Export"

    def format_value(self, value: Any) -> Any:
        # openpyxl writes naive datetimes as native spreadsheet dates
        if isinstance(value, (datetime, date)) and getattr(value, "tzinfo", None) is None:
            return value
        return super().format_value(value)

    def generate(self, rows: Iterable[Row], columns: Mapping[str, str]) -> Iterator[bytes]:
        workbook = Workbook(write_only=True)
        sheet = workbook.create_sheet(title=self.sheet_title)
        header = []
        for label in self.labels(columns):
            cell = WriteOnlyCell(sheet, value=label)
            cell.font = Font(bold=True)
            header.append(cell)
        sheet.append(header)
        for row in rows:
            sheet.append(self.values(row, columns))

        fd, path = tempfile.mkstemp(suffix=".xlsx")
        os.close(fd)
        try:
            workbook.save(path)
            with open(path, "rb") as handle:
                while True:
                    chunk = handle.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        finally:
            os.unlink(path)
