"""
XLSX row source for spreadsheet uploads.

Reads one worksheet (by name, 0-based index, or the active sheet) with
openpyxl in read-only mode. The first row is the header row. Cell values
are normalized: dates become ``YYYY-MM-DD``, integral floats become ints,
blank cells become empty strings.
"""

from __future__ import annotations

import io
import zipfile
from datetime import date, datetime
from typing import Any, Iterator, Mapping

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from sitemap_ingestion.adapters.base import dedupe_headers
from sitemap_kernel.exceptions import RowSourceError


def _cell_value(v: Any) -> Any:
    """Normalize one openpyxl cell value."""
    if v is None:
        return ""
    if isinstance(v, datetime):
        return v.date().isoformat()
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, float):
        if v == int(v):
            return int(v)
        return v
    if isinstance(v, str):
        return v.strip()
    return v


class XlsxRowSource:
    """Rows of one worksheet of an .xlsx workbook held in memory."""

    def __init__(
        self,
        content: bytes,
        name: str = "upload.xlsx",
        *,
        sheet: int | str | None = None,
    ) -> None:
        self.name = name
        self._content = content
        self._sheet = sheet
        self._headers: tuple[str, ...] | None = None

    def _open(self) -> Any:
        try:
            return openpyxl.load_workbook(
                io.BytesIO(self._content), read_only=True, data_only=True
            )
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
            raise RowSourceError(self.name, f"not a readable workbook: {exc}") from exc

    def _get_sheet(self, wb: Any) -> Any:
        if self._sheet is None:
            return wb.active
        try:
            if isinstance(self._sheet, int):
                return wb.worksheets[self._sheet]
            return wb[self._sheet]
        except (IndexError, KeyError):
            raise RowSourceError(self.name, f"no sheet {self._sheet!r}") from None

    def headers(self) -> tuple[str, ...]:
        if self._headers is None:
            wb = self._open()
            try:
                first = next(self._get_sheet(wb).iter_rows(max_row=1, values_only=True), ())
            finally:
                wb.close()
            raw = [str(_cell_value(v)) for v in first]
            while raw and not raw[-1]:
                raw.pop()
            self._headers = dedupe_headers(raw)
        return self._headers

    def rows(self) -> Iterator[tuple[int, Mapping[str, Any]]]:
        headers = self.headers()
        if not headers:
            return
        wb = self._open()
        try:
            sheet = self._get_sheet(wb)
            for row_number, values in enumerate(
                sheet.iter_rows(min_row=2, values_only=True), start=1
            ):
                cells = [_cell_value(v) for v in values[: len(headers)]]
                if not any(c != "" for c in cells):
                    continue
                cells += [""] * (len(headers) - len(cells))
                yield row_number, dict(zip(headers, cells))
        finally:
            wb.close()
