"""
Record transformer: pure transformation from one raw row to a URL record.

ZERO I/O. ``transform_row`` handles a single row; ``RecordTransformer``
owns the state of one file's run (the seen-URL set and the running
counters) and is discarded when the file is done.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

from sitemap_config.schema import (
    GROUPING_AUTO,
    GROUPING_NONE,
    GROUPING_PRESERVE,
    BatchConfiguration,
    ChangeFrequency,
)
from sitemap_ingestion.domain.types import (
    ConversionStatistics,
    DuplicateUrl,
    InvalidLastmod,
    RowExclusion,
    UrlRecord,
)

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")
LASTMOD_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_GROUP_KEY = "sitemap"
LINK_FIELD = "link"
GROUP_FIELD = "group"

_FIELD_FALLBACK_KEYS = {
    "category": "uncategorized",
    "store_id": "unknown-store",
}
_PRESERVE_FALLBACK_KEY = "default"


# -----------------------------------------------------------------------------
# Result types
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TemplateResolution:
    """Result of substituting one row into the URL template."""

    url: str | None
    missing_fields: tuple[str, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return self.url is not None

    @property
    def reason(self) -> str | None:
        if not self.missing_fields:
            return None
        return f"Missing required fields: {', '.join(self.missing_fields)}"


@dataclass(frozen=True)
class PlaceholderValidation:
    """Whether every template placeholder maps to an available column."""

    is_valid: bool
    missing: tuple[str, ...] = ()

    @property
    def message(self) -> str | None:
        if self.is_valid:
            return None
        return "Cannot resolve placeholders: " + ", ".join(
            "{" + name + "}" for name in self.missing
        )


@dataclass(frozen=True)
class RowOutcome:
    """Transform of one row: a record, or the reason it was excluded."""

    record: UrlRecord | None
    exclusion_reason: str | None = None
    invalid_lastmod: str | None = None


# -----------------------------------------------------------------------------
# Template resolution (pure)
# -----------------------------------------------------------------------------


def cell_text(value: Any) -> str:
    """Trimmed text of a cell; None is blank."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def extract_placeholders(template: str) -> tuple[str, ...]:
    """Placeholder names in order of first appearance, without repeats."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_PATTERN.finditer(template or ""):
        seen.setdefault(match.group(1), None)
    return tuple(seen)


def resolve_column(field_name: str, column_mapping: Mapping[str, str]) -> str:
    """
    Column that feeds ``{field_name}``.

    ``link`` uses the mapping's designated link column; any other name uses
    the first mapping entry whose key or column equals it; otherwise the name
    itself is taken as a column.
    """
    if field_name == LINK_FIELD and LINK_FIELD in column_mapping:
        return column_mapping[LINK_FIELD]
    for key, column in column_mapping.items():
        if key == field_name or column == field_name:
            return column
    return field_name


def apply_url_template(
    template: str,
    row: Mapping[str, Any],
    column_mapping: Mapping[str, str],
) -> TemplateResolution:
    """Substitute every ``{field}``; blank values are reported in encounter order."""
    missing: list[str] = []

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        value = cell_text(row.get(resolve_column(name, column_mapping)))
        if not value:
            missing.append(name)
            return match.group(0)
        return value

    url = PLACEHOLDER_PATTERN.sub(substitute, template)
    if missing:
        return TemplateResolution(url=None, missing_fields=tuple(missing))
    return TemplateResolution(url=url)


def validate_url_placeholders(
    template: str,
    column_mapping: Mapping[str, str],
    headers: tuple[str, ...] | list[str],
) -> PlaceholderValidation:
    """Check that every placeholder resolves to one of ``headers``."""
    available = set(headers)
    missing = tuple(
        name
        for name in extract_placeholders(template)
        if resolve_column(name, column_mapping) not in available
    )
    return PlaceholderValidation(is_valid=not missing, missing=missing)


# -----------------------------------------------------------------------------
# Field rules (pure)
# -----------------------------------------------------------------------------


def is_valid_lastmod(value: str) -> bool:
    """True for an existing calendar date written ``YYYY-MM-DD``."""
    if not LASTMOD_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def sanitize_group_name(value: Any) -> str:
    """Lowercase; runs of non-alphanumerics become one hyphen; edges trimmed."""
    text = cell_text(value).lower()
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-")


def fallback_group_key(grouping_field: str) -> str:
    """Key used when an explicit grouping column is blank or unusable."""
    return _FIELD_FALLBACK_KEYS.get(grouping_field, "default")


def derive_group_key(row: Mapping[str, Any], config: BatchConfiguration) -> str:
    grouping = config.grouping
    if grouping in (GROUPING_NONE, GROUPING_AUTO):
        return DEFAULT_GROUP_KEY
    if grouping == GROUPING_PRESERVE:
        column = config.column_mapping.get(GROUP_FIELD, GROUP_FIELD)
        return sanitize_group_name(row.get(column)) or _PRESERVE_FALLBACK_KEY
    column = config.column_mapping.get(grouping, grouping)
    return sanitize_group_name(row.get(column)) or fallback_group_key(grouping)


def lastmod_column(config: BatchConfiguration) -> str:
    return config.column_mapping.get(config.lastmod_field, config.lastmod_field)


def transform_row(
    row_number: int,
    row: Mapping[str, Any],
    config: BatchConfiguration,
) -> RowOutcome:
    """Turn one row into a URL record or an exclusion. Pure function."""
    resolution = apply_url_template(config.url_template, row, config.column_mapping)
    if not resolution.is_resolved:
        return RowOutcome(record=None, exclusion_reason=resolution.reason)

    lastmod: str | None = None
    invalid: str | None = None
    if config.include_lastmod:
        raw = cell_text(row.get(lastmod_column(config)))
        if raw:
            if is_valid_lastmod(raw):
                lastmod = raw
            else:
                invalid = raw

    changefreq = config.changefreq
    if isinstance(changefreq, ChangeFrequency):
        changefreq = changefreq.value

    record = UrlRecord(
        loc=resolution.url,
        group_key=derive_group_key(row, config),
        row_number=row_number,
        lastmod=lastmod,
        changefreq=changefreq,
        priority=config.priority,
    )
    return RowOutcome(record=record, invalid_lastmod=invalid)


# -----------------------------------------------------------------------------
# Per-file run
# -----------------------------------------------------------------------------


@dataclass
class RecordTransformer:
    """
    One file's conversion run.

    Holds the seen-URL set and running counters for exactly one file; create
    a new transformer per file.
    """

    config: BatchConfiguration
    records: list[UrlRecord] = field(default_factory=list)
    exclusions: list[RowExclusion] = field(default_factory=list)
    duplicates: list[DuplicateUrl] = field(default_factory=list)
    invalid_lastmod: list[InvalidLastmod] = field(default_factory=list)
    total_rows: int = 0
    _seen: set[str] = field(default_factory=set, init=False, repr=False)

    def feed(self, row_number: int, row: Mapping[str, Any]) -> UrlRecord | None:
        """Transform one row; returns the record when it joins the output."""
        self.total_rows += 1
        outcome = transform_row(row_number, row, self.config)
        if outcome.record is None:
            self.exclusions.append(RowExclusion(row_number, outcome.exclusion_reason or ""))
            return None

        record = outcome.record
        if record.loc in self._seen:
            self.duplicates.append(DuplicateUrl(row_number, record.loc))
            return None
        self._seen.add(record.loc)

        if outcome.invalid_lastmod is not None:
            self.invalid_lastmod.append(InvalidLastmod(row_number, outcome.invalid_lastmod))
        self.records.append(record)
        return record

    @property
    def statistics(self) -> ConversionStatistics:
        return ConversionStatistics(
            total_rows=self.total_rows,
            valid_urls=len(self.records),
            excluded_rows=len(self.exclusions),
            duplicate_urls=len(self.duplicates),
            invalid_lastmod=len(self.invalid_lastmod),
        )
