"""
JSON row source.

Accepts a top-level array of objects, or an object wrapping that array
under ``rows``, ``data`` or ``records``. Headers are the union of object
keys in first-seen order; rows missing a key read it as an empty string.
"""

from __future__ import annotations

import json
from typing import Any, Iterator, Mapping

from sitemap_kernel.exceptions import RowSourceError

_WRAPPER_KEYS = ("rows", "data", "records")


class JsonRowSource:
    """Rows of a JSON document held in memory."""

    def __init__(self, content: bytes, name: str = "upload.json") -> None:
        self.name = name
        try:
            payload = json.loads(content.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise RowSourceError(name, f"invalid JSON: {exc}") from exc

        if isinstance(payload, dict):
            for key in _WRAPPER_KEYS:
                if isinstance(payload.get(key), list):
                    payload = payload[key]
                    break
        if not isinstance(payload, list):
            raise RowSourceError(name, "expected an array of objects")

        records: list[dict[str, Any]] = []
        headers: dict[str, None] = {}
        for index, item in enumerate(payload, start=1):
            if not isinstance(item, dict):
                raise RowSourceError(name, f"item {index} is not an object")
            records.append(item)
            for key in item:
                headers.setdefault(str(key), None)
        self._records = records
        self._headers = tuple(headers)

    def headers(self) -> tuple[str, ...]:
        return self._headers

    def rows(self) -> Iterator[tuple[int, Mapping[str, Any]]]:
        for row_number, item in enumerate(self._records, start=1):
            row = {h: item.get(h, "") for h in self._headers}
            for key, value in row.items():
                if value is None:
                    row[key] = ""
                elif isinstance(value, (dict, list)):
                    row[key] = json.dumps(value, sort_keys=True)
            yield row_number, row
