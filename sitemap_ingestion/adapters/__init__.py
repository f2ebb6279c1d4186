"""
Row sources: turn uploaded bytes into ordered field->value rows.

``row_source_for`` picks the source for a file type; ``detect_file_type``
derives the type from a file name.
"""

from __future__ import annotations

from pathlib import PurePath

from sitemap_ingestion.adapters.base import RowSource
from sitemap_ingestion.adapters.csv_source import CsvRowSource
from sitemap_ingestion.adapters.json_source import JsonRowSource
from sitemap_ingestion.adapters.xlsx_source import XlsxRowSource
from sitemap_kernel.exceptions import UnsupportedFileTypeError

SUPPORTED_FILE_TYPES = ("csv", "xlsx", "xls", "json")


def detect_file_type(file_name: str) -> str:
    """Lower-cased extension without the dot ("" when there is none)."""
    return PurePath(file_name).suffix.lower().lstrip(".")


def row_source_for(file_type: str, content: bytes, file_name: str) -> RowSource:
    """Build the row source for ``file_type`` over ``content``."""
    kind = (file_type or "").lower().lstrip(".")
    if kind == "csv":
        return CsvRowSource(content, file_name)
    if kind in ("xlsx", "xls"):
        return XlsxRowSource(content, file_name)
    if kind == "json":
        return JsonRowSource(content, file_name)
    raise UnsupportedFileTypeError(file_type)


__all__ = [
    "CsvRowSource",
    "JsonRowSource",
    "RowSource",
    "SUPPORTED_FILE_TYPES",
    "XlsxRowSource",
    "detect_file_type",
    "row_source_for",
]
