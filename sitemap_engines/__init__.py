"""
Module: sitemap_engines
Responsibility:
    Pure assembly layer: partition URL records into size-bounded sitemap
    files (or one file per source, under an index) and render them as XML.

Architecture position:
    Engines -- zero I/O.  Never read the clock; the index date is passed in
    by the caller (sitemap_services).

Usage:
    from sitemap_engines import plan_sitemaps, render_urlset, render_index
"""

from sitemap_engines.chunking import (
    DEFAULT_SITEMAP_NAME,
    INDEX_FILE_NAME,
    SitemapFile,
    SitemapIndex,
    SitemapPlan,
    chunk_records,
    hierarchy_stem,
    partition_records,
    plan_hierarchy,
    plan_sitemaps,
    sitemap_file_name,
)
from sitemap_engines.rendering import (
    SITEMAP_NS,
    format_priority,
    index_location,
    render_index,
    render_urlset,
)
from sitemap_engines.tracer import traced_engine

__all__ = [
    "DEFAULT_SITEMAP_NAME",
    "INDEX_FILE_NAME",
    "SITEMAP_NS",
    "SitemapFile",
    "SitemapIndex",
    "SitemapPlan",
    "chunk_records",
    "format_priority",
    "hierarchy_stem",
    "index_location",
    "partition_records",
    "plan_hierarchy",
    "plan_sitemaps",
    "render_index",
    "render_urlset",
    "sitemap_file_name",
    "traced_engine",
]
