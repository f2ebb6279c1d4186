"""
Row source protocol and header helpers.

Contract:
    RowSource.headers() returns the ordered header list.
    RowSource.rows() yields ``(row_number, mapping)`` with 1-based data row
    numbers; each call starts a fresh pass over the same input.

Architecture: sitemap_ingestion/adapters. Parsing only, no storage or
scheduler imports.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Protocol, runtime_checkable


@runtime_checkable
class RowSource(Protocol):
    """Ordered, restartable sequence of field->value rows from one file."""

    name: str

    def headers(self) -> tuple[str, ...]:
        ...

    def rows(self) -> Iterator[tuple[int, Mapping[str, Any]]]:
        ...


def dedupe_headers(raw: list[str]) -> tuple[str, ...]:
    """Blank headers become ``Column_N``; repeats get ``_2``, ``_3`` suffixes."""
    headers: list[str] = []
    for index, value in enumerate(raw):
        key = value or f"Column_{index + 1}"
        base = key
        count = 1
        while key in headers:
            count += 1
            key = f"{base}_{count}"
        headers.append(key)
    return tuple(headers)
