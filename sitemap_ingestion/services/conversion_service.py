"""
Conversion service: row source -> URL record set.

Drives the record transformer over one file's rows and packages the result
with statistics and per-row diagnostics. Also offers the read-only views
used before and after a conversion: preview, exclusion report, summary.
Uses structured logging (LogContext, get_logger("ingestion.*")).
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Callable

from sitemap_config.schema import BatchConfiguration
from sitemap_ingestion.adapters import (
    CsvRowSource,
    JsonRowSource,
    RowSource,
    XlsxRowSource,
)
from sitemap_ingestion.domain.types import (
    ConversionPreview,
    ConversionResult,
    ConversionSummary,
    ExclusionReasonCount,
    ExclusionReport,
    RowExclusion,
)
from sitemap_ingestion.mapping.engine import (
    RecordTransformer,
    extract_placeholders,
    transform_row,
    validate_url_placeholders,
)
from sitemap_kernel.domain.clock import Clock, SystemClock
from sitemap_kernel.exceptions import ConversionError, UnsupportedFileTypeError
from sitemap_kernel.logging_config import get_logger

logger = get_logger("ingestion.conversion_service")

RowSourceFactory = Callable[[bytes, str], RowSource]

PREVIEW_SAMPLE_SIZE = 5
PREVIEW_EXCLUSION_LIMIT = 3
REPORT_SAMPLE_ROWS = 10


def _default_sources() -> dict[str, RowSourceFactory]:
    return {
        "csv": CsvRowSource,
        "json": JsonRowSource,
        "xlsx": XlsxRowSource,
        "xls": XlsxRowSource,
    }


class ConversionService:
    """Converts uploaded files into URL record sets. Stateless between calls."""

    def __init__(
        self,
        clock: Clock | None = None,
        sources: dict[str, RowSourceFactory] | None = None,
    ):
        self._clock = clock or SystemClock()
        self._sources = sources if sources is not None else _default_sources()

    def row_source(self, content: bytes, file_type: str, source_name: str) -> RowSource:
        factory = self._sources.get((file_type or "").lower().lstrip("."))
        if factory is None:
            raise UnsupportedFileTypeError(file_type)
        return factory(content, source_name)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def convert(
        self,
        source: RowSource,
        config: BatchConfiguration,
        source_name: str | None = None,
    ) -> ConversionResult:
        """
        Convert every row of ``source``.

        Row-level problems (blank fields, duplicate URLs, bad dates) are
        recorded, never raised. Raises ConversionError only when the template
        cannot be resolved against the file's headers at all.
        """
        name = source_name or source.name
        headers = source.headers()
        placeholders = extract_placeholders(config.url_template)
        check = validate_url_placeholders(
            config.url_template, config.column_mapping, headers
        )
        if placeholders and len(check.missing) == len(placeholders):
            raise ConversionError(name, check.message or "template unresolvable")

        transformer = RecordTransformer(config)
        for row_number, row in source.rows():
            transformer.feed(row_number, row)

        result = ConversionResult(
            source_name=name,
            headers=headers,
            records=tuple(transformer.records),
            statistics=transformer.statistics,
            exclusions=tuple(transformer.exclusions),
            duplicates=tuple(transformer.duplicates),
            invalid_lastmod=tuple(transformer.invalid_lastmod),
            processed_at=self._clock.now(),
        )
        logger.info(
            "file_converted",
            extra={"source_name": name, **result.statistics.to_dict()},
        )
        if not check.is_valid:
            logger.warning(
                "placeholders_unresolved",
                extra={"source_name": name, "missing": list(check.missing)},
            )
        return result

    def convert_bytes(
        self,
        content: bytes,
        file_type: str,
        config: BatchConfiguration,
        source_name: str,
    ) -> ConversionResult:
        return self.convert(
            self.row_source(content, file_type, source_name), config, source_name
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def preview(
        self,
        source: RowSource,
        config: BatchConfiguration,
        sample_size: int = PREVIEW_SAMPLE_SIZE,
    ) -> ConversionPreview:
        """First ``sample_size`` rows with the URLs they would produce."""
        headers = source.headers()
        check = validate_url_placeholders(
            config.url_template, config.column_mapping, headers
        )
        sample_rows = []
        urls: list[str] = []
        exclusions: list[RowExclusion] = []
        total = 0
        for row_number, row in source.rows():
            total += 1
            if len(sample_rows) >= sample_size:
                continue
            sample_rows.append(dict(row))
            outcome = transform_row(row_number, row, config)
            if outcome.record is not None:
                urls.append(outcome.record.loc)
            elif len(exclusions) < PREVIEW_EXCLUSION_LIMIT:
                exclusions.append(RowExclusion(row_number, outcome.exclusion_reason or ""))

        return ConversionPreview(
            source_name=source.name,
            headers=headers,
            total_rows=total,
            sample_rows=tuple(sample_rows),
            sample_urls=tuple(urls),
            sample_exclusions=tuple(exclusions),
            placeholder_errors=(check.message,) if check.message else (),
        )

    @staticmethod
    def exclusion_report(result: ConversionResult) -> ExclusionReport:
        """Exclusions grouped by reason, most frequent first."""
        counts: Counter[str] = Counter()
        samples: dict[str, list[int]] = defaultdict(list)
        for exclusion in result.exclusions:
            counts[exclusion.reason] += 1
            if len(samples[exclusion.reason]) < REPORT_SAMPLE_ROWS:
                samples[exclusion.reason].append(exclusion.row_number)

        reasons = tuple(
            ExclusionReasonCount(reason=reason, count=count, sample_rows=tuple(samples[reason]))
            for reason, count in counts.most_common()
        )
        return ExclusionReport(
            total_excluded=len(result.exclusions),
            reasons=reasons,
            duplicate_count=len(result.duplicates),
            invalid_lastmod_count=len(result.invalid_lastmod),
        )

    @staticmethod
    def summarize(result: ConversionResult) -> ConversionSummary:
        stats = result.statistics
        total = stats.total_rows
        return ConversionSummary(
            source_name=result.source_name,
            statistics=stats,
            success_rate=round(stats.valid_urls / total * 100, 2) if total else 0.0,
            exclusion_rate=round(stats.excluded_rows / total * 100, 2) if total else 0.0,
            duplicate_count=stats.duplicate_urls,
            group_count=len({r.group_key for r in result.records}),
        )
