from __future__ import annotations

import os
import tempfile
from datetime import datetime
from typing import Iterable, Iterator, List, Mapping

from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import cm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .base import Exporter, Row

CHUNK_SIZE = 64 * 1024
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_SIZE = 8
LINE_HEIGHT = 12


class PdfExporter(Exporter):
    """Plain table drawn page by page on a landscape A4 canvas."""

    format = "pdf"
    mimetype = "application/pdf"
    title = "Exportación"

    def __init__(self, *args, page_size=landscape(A4), margin: float = 1.5 * cm, **kwargs):
        super().__init__(*args, **kwargs)
        self.page_size = page_size
        self.margin = margin

    def _fit(self, text: str, width: float, font: str) -> str:
        if stringWidth(text, font, FONT_SIZE) <= width:
            return text
        ellipsis = "..."
        while text and stringWidth(text + ellipsis, font, FONT_SIZE) > width:
            text = text[:-1]
        return text + ellipsis

    def _draw_row(self, pdf: canvas.Canvas, values: List[str], y: float, col_width: float, font: str) -> None:
        pdf.setFont(font, FONT_SIZE)
        x = self.margin
        for value in values:
            pdf.drawString(x, y, self._fit(value, col_width - 4, font))
            x += col_width

    def generate(self, rows: Iterable[Row], columns: Mapping[str, str]) -> Iterator[bytes]:
        fd, path = tempfile.mkstemp(suffix=".pdf")
        os.close(fd)
        try:
            width, height = self.page_size
            labels = self.labels(columns)
            col_width = (width - 2 * self.margin) / max(len(labels), 1)
            pdf = canvas.Canvas(path, pagesize=self.page_size)
            pdf.setTitle(self.title)

            def _start_page() -> float:
                top = height - self.margin
                pdf.setFont(FONT_BOLD, 11)
                pdf.drawString(self.margin, top, f"{self.title} ({datetime.now().strftime('%Y-%m-%d %H:%M')})")
                top -= LINE_HEIGHT * 2
                self._draw_row(pdf, labels, top, col_width, FONT_BOLD)
                pdf.line(self.margin, top - 3, width - self.margin, top - 3)
                return top - LINE_HEIGHT

            y = _start_page()
            for row in rows:
                if y < self.margin:
                    pdf.showPage()
                    y = _start_page()
                self._draw_row(pdf, [str(v) for v in self.values(row, columns)], y, col_width, FONT)
                y -= LINE_HEIGHT
            pdf.save()

            with open(path, "rb") as handle:
                while True:
                    chunk = handle.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        finally:
            os.unlink(path)
