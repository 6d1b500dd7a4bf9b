"""Export strategies keyed by format name."""
from __future__ import annotations

from .base import Exporter, available_formats, get_exporter, register_exporter
from .csv_exporter import CsvExporter
from .json_exporter import JsonExporter
from .pdf_exporter import PdfExporter
from .xlsx_exporter import XlsxExporter

register_exporter("csv", CsvExporter)
register_exporter("xlsx", XlsxExporter)
register_exporter("pdf", PdfExporter)
register_exporter("json", JsonExporter)

__all__ = [
    "Exporter",
    "CsvExporter",
    "JsonExporter",
    "PdfExporter",
    "XlsxExporter",
    "available_formats",
    "get_exporter",
    "register_exporter",
]
