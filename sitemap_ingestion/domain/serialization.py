"""
JSON form of a URL record set.

Layout::

    {"urls": [{"loc", "group", "row", "lastmod"?, "changefreq"?, "priority"?}],
     "statistics": {...},
     "metadata": {...}}

``dump_record_set`` is deterministic: the same result always yields the
same bytes.
"""

from __future__ import annotations

import json
from typing import Iterable

from sitemap_ingestion.domain.types import (
    ConversionResult,
    ConversionStatistics,
    RecordSet,
    UrlRecord,
)
from sitemap_kernel.exceptions import ConversionError


def dump_record_set(result: ConversionResult | RecordSet) -> bytes:
    record_set = result.record_set if isinstance(result, ConversionResult) else result
    payload = {
        "urls": [r.to_dict() for r in record_set.records],
        "statistics": record_set.statistics.to_dict(),
        "metadata": dict(record_set.metadata),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def load_record_set(data: bytes, name: str = "record set") -> RecordSet:
    try:
        payload = json.loads(data.decode("utf-8"))
        records = tuple(UrlRecord.from_dict(item) for item in payload["urls"])
        statistics = ConversionStatistics.from_dict(payload.get("statistics", {}))
    except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
        raise ConversionError(name, f"corrupt record set: {exc}") from exc
    return RecordSet(
        records=records,
        statistics=statistics,
        metadata=payload.get("metadata") or {},
    )


def merge_record_sets(record_sets: Iterable[RecordSet]) -> RecordSet:
    """
    Concatenate record sets in order.

    A location already produced by an earlier set is dropped and counted as a
    duplicate, so the merged set still holds each location once.
    """
    seen: set[str] = set()
    merged: list[UrlRecord] = []
    statistics = ConversionStatistics()
    sources: list[str] = []
    cross_duplicates = 0
    for record_set in record_sets:
        statistics = statistics + record_set.statistics
        source = record_set.metadata.get("source_name")
        if source:
            sources.append(source)
        for record in record_set.records:
            if record.loc in seen:
                cross_duplicates += 1
                continue
            seen.add(record.loc)
            merged.append(record)

    statistics = ConversionStatistics(
        total_rows=statistics.total_rows,
        valid_urls=len(merged),
        excluded_rows=statistics.excluded_rows,
        duplicate_urls=statistics.duplicate_urls + cross_duplicates,
        invalid_lastmod=statistics.invalid_lastmod,
    )
    return RecordSet(
        records=tuple(merged),
        statistics=statistics,
        metadata={"sources": sources, "merged": True},
    )
