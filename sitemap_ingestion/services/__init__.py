"""Ingestion services."""

from sitemap_ingestion.services.conversion_service import ConversionService

__all__ = ["ConversionService"]
