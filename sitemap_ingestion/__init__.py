"""
Sitemap ingestion: uploaded files -> URL record sets.

Layers:
    adapters/  -- row sources over CSV, XLSX and JSON bytes
    mapping/   -- pure record transformer (template, lastmod, grouping, dedupe)
    domain/    -- frozen result types, record-set JSON, upload checks
    services/  -- ConversionService
"""

from sitemap_ingestion.domain.types import (
    ConversionResult,
    ConversionStatistics,
    RecordSet,
    UrlRecord,
)
from sitemap_ingestion.services.conversion_service import ConversionService

__all__ = [
    "ConversionResult",
    "ConversionService",
    "ConversionStatistics",
    "RecordSet",
    "UrlRecord",
]
