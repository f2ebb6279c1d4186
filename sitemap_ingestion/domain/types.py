"""
sitemap_ingestion.domain.types -- Pure frozen dataclasses for conversion.

ZERO I/O. A conversion turns one file's rows into an ordered set of URL
records plus statistics and per-row diagnostics.

Statistics invariant:
    total_rows == valid_urls + excluded_rows + duplicate_urls
    (invalid_lastmod counts valid rows whose date was dropped)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


# =============================================================================
# URL records
# =============================================================================


@dataclass(frozen=True)
class UrlRecord:
    """One fully-resolved sitemap entry."""

    loc: str
    group_key: str
    row_number: int
    lastmod: str | None = None  # YYYY-MM-DD
    changefreq: str | None = None
    priority: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "loc": self.loc,
            "group": self.group_key,
            "row": self.row_number,
        }
        if self.lastmod is not None:
            data["lastmod"] = self.lastmod
        if self.changefreq is not None:
            data["changefreq"] = self.changefreq
        if self.priority is not None:
            data["priority"] = self.priority
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UrlRecord:
        priority = data.get("priority")
        return cls(
            loc=str(data["loc"]),
            group_key=str(data.get("group") or "sitemap"),
            row_number=int(data.get("row", 0)),
            lastmod=data.get("lastmod"),
            changefreq=data.get("changefreq"),
            priority=float(priority) if priority is not None else None,
        )


@dataclass(frozen=True)
class ConversionStatistics:
    """Per-file conversion counters."""

    total_rows: int = 0
    valid_urls: int = 0
    excluded_rows: int = 0
    duplicate_urls: int = 0
    invalid_lastmod: int = 0

    def __add__(self, other: ConversionStatistics) -> ConversionStatistics:
        return ConversionStatistics(
            total_rows=self.total_rows + other.total_rows,
            valid_urls=self.valid_urls + other.valid_urls,
            excluded_rows=self.excluded_rows + other.excluded_rows,
            duplicate_urls=self.duplicate_urls + other.duplicate_urls,
            invalid_lastmod=self.invalid_lastmod + other.invalid_lastmod,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total_rows": self.total_rows,
            "valid_urls": self.valid_urls,
            "excluded_rows": self.excluded_rows,
            "duplicate_urls": self.duplicate_urls,
            "invalid_lastmod": self.invalid_lastmod,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConversionStatistics:
        return cls(**{k: int(data.get(k, 0)) for k in cls.__dataclass_fields__})


# =============================================================================
# Row diagnostics
# =============================================================================


@dataclass(frozen=True)
class RowExclusion:
    """A row that produced no URL record."""

    row_number: int
    reason: str


@dataclass(frozen=True)
class DuplicateUrl:
    """A row whose URL was already produced earlier in the same file."""

    row_number: int
    url: str


@dataclass(frozen=True)
class InvalidLastmod:
    """A row whose last-modified value was not an ISO calendar date."""

    row_number: int
    value: str


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class RecordSet:
    """The stored form of a conversion: records, statistics, metadata."""

    records: tuple[UrlRecord, ...]
    statistics: ConversionStatistics
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class ConversionResult:
    """Full outcome of converting one row source."""

    source_name: str
    headers: tuple[str, ...]
    records: tuple[UrlRecord, ...]
    statistics: ConversionStatistics
    exclusions: tuple[RowExclusion, ...] = ()
    duplicates: tuple[DuplicateUrl, ...] = ()
    invalid_lastmod: tuple[InvalidLastmod, ...] = ()
    processed_at: datetime | None = None

    @property
    def record_set(self) -> RecordSet:
        return RecordSet(
            records=self.records,
            statistics=self.statistics,
            metadata={
                "source_name": self.source_name,
                "headers": list(self.headers),
                "processed_at": (
                    self.processed_at.isoformat() if self.processed_at else None
                ),
            },
        )


@dataclass(frozen=True)
class ConversionPreview:
    """First rows of a file with the URLs they would produce."""

    source_name: str
    headers: tuple[str, ...]
    total_rows: int
    sample_rows: tuple[Mapping[str, Any], ...]
    sample_urls: tuple[str, ...]
    sample_exclusions: tuple[RowExclusion, ...]
    placeholder_errors: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.placeholder_errors


@dataclass(frozen=True)
class ExclusionReasonCount:
    reason: str
    count: int
    sample_rows: tuple[int, ...]


@dataclass(frozen=True)
class ExclusionReport:
    """Exclusions grouped by reason, most frequent first."""

    total_excluded: int
    reasons: tuple[ExclusionReasonCount, ...]
    duplicate_count: int
    invalid_lastmod_count: int


@dataclass(frozen=True)
class ConversionSummary:
    source_name: str
    statistics: ConversionStatistics
    success_rate: float  # percent of rows that became URLs
    exclusion_rate: float
    duplicate_count: int
    group_count: int
