"""
Services: stateful orchestration over engines and kernel storage.
"""

from sitemap_services.generation_service import (
    GeneratedFile,
    GenerationResult,
    SitemapDocument,
    SitemapGenerationService,
)

__all__ = [
    "GeneratedFile",
    "GenerationResult",
    "SitemapDocument",
    "SitemapGenerationService",
]
