"""
CSV row source.

Uses csv.DictReader over decoded bytes. UTF-8 input has its BOM stripped
via utf-8-sig. Rows whose cells are all blank are skipped but still consume
a row number, so numbers match the data row position in the file.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Iterator, Mapping

from sitemap_ingestion.adapters.base import dedupe_headers
from sitemap_kernel.exceptions import RowSourceError


def _get_encoding(encoding: str) -> str:
    if encoding.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"
    return encoding


class CsvRowSource:
    """Rows of a delimited text file held in memory."""

    def __init__(
        self,
        content: bytes,
        name: str = "upload.csv",
        *,
        delimiter: str = ",",
        encoding: str = "utf-8",
    ) -> None:
        self.name = name
        self._delimiter = delimiter
        try:
            self._text = content.decode(_get_encoding(encoding))
        except UnicodeDecodeError as exc:
            raise RowSourceError(name, f"not valid {encoding} text: {exc}") from exc
        self._headers: tuple[str, ...] | None = None

    def headers(self) -> tuple[str, ...]:
        if self._headers is None:
            reader = csv.reader(io.StringIO(self._text, newline=""), delimiter=self._delimiter)
            first = next(reader, None)
            self._headers = dedupe_headers([c.strip() for c in first or []])
        return self._headers

    def rows(self) -> Iterator[tuple[int, Mapping[str, Any]]]:
        headers = self.headers()
        if not headers:
            return
        reader = csv.reader(io.StringIO(self._text, newline=""), delimiter=self._delimiter)
        next(reader, None)
        row_number = 0
        try:
            for cells in reader:
                row_number += 1
                if not any(c.strip() for c in cells):
                    continue
                padded = list(cells[: len(headers)]) + [""] * (len(headers) - len(cells))
                yield row_number, dict(zip(headers, padded))
        except csv.Error as exc:
            raise RowSourceError(self.name, f"line {reader.line_num}: {exc}") from exc
