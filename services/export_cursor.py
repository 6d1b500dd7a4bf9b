"""Page-by-page cursor feeding exporters without loading the full result set."""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, Optional, Sequence

from .list_query import ListQuery


class ExportCursorConsumed(RuntimeError):
    pass


class ExportCursor:
    """Finite, single-pass iterator of projected rows.

    ``fetch_page`` receives a ``ListQuery`` positioned on the wanted page and
    returns an object exposing ``items``, ``page`` and ``last_page``. The
    first page is read by ``open()`` so query errors surface before any
    response body is produced.
    """

    def __init__(
        self,
        fetch_page: Callable[[ListQuery], Any],
        query: ListQuery,
        *,
        page_size: int,
        transform: Callable[[Any], Dict[str, Any]],
        columns: Optional[Sequence[str]] = None,
    ):
        self._fetch_page = fetch_page
        self._query = query
        self._page_size = max(int(page_size), 1)
        self._transform = transform
        self._columns = list(columns) if columns else None
        self._first_page = None
        self._started = False
        self.pages_read = 0

    def _fetch(self, page: int):
        self.pages_read += 1
        return self._fetch_page(self._query.with_page(page, self._page_size))

    def open(self) -> "ExportCursor":
        if self._first_page is None and not self._started:
            self._first_page = self._fetch(1)
        return self

    def project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self._columns is None:
            return row
        return {key: row.get(key) for key in self._columns}

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        if self._started:
            raise ExportCursorConsumed("export cursor already iterated; open a new one")
        self._started = True
        return self._rows()

    def _rows(self) -> Iterator[Dict[str, Any]]:
        page = self._first_page if self._first_page is not None else self._fetch(1)
        self._first_page = None
        while True:
            for item in page.items:
                yield self.project(self._transform(item))
            if not page.items or page.page >= page.last_page:
                return
            page = self._fetch(page.page + 1)
