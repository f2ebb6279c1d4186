"""
Pure domain layer for conversion: record types, serialization, upload checks.
"""

from sitemap_ingestion.domain.serialization import (
    dump_record_set,
    load_record_set,
    merge_record_sets,
)
from sitemap_ingestion.domain.types import (
    ConversionPreview,
    ConversionResult,
    ConversionStatistics,
    ConversionSummary,
    DuplicateUrl,
    ExclusionReasonCount,
    ExclusionReport,
    InvalidLastmod,
    RecordSet,
    RowExclusion,
    UrlRecord,
)

__all__ = [
    "ConversionPreview",
    "ConversionResult",
    "ConversionStatistics",
    "ConversionSummary",
    "DuplicateUrl",
    "ExclusionReasonCount",
    "ExclusionReport",
    "InvalidLastmod",
    "RecordSet",
    "RowExclusion",
    "UrlRecord",
    "dump_record_set",
    "load_record_set",
    "merge_record_sets",
]
