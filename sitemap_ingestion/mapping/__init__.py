"""Record transformer: rows to URL records."""

from sitemap_ingestion.mapping.engine import (
    DEFAULT_GROUP_KEY,
    PlaceholderValidation,
    RecordTransformer,
    RowOutcome,
    TemplateResolution,
    apply_url_template,
    derive_group_key,
    extract_placeholders,
    fallback_group_key,
    is_valid_lastmod,
    resolve_column,
    sanitize_group_name,
    transform_row,
    validate_url_placeholders,
)

__all__ = [
    "DEFAULT_GROUP_KEY",
    "PlaceholderValidation",
    "RecordTransformer",
    "RowOutcome",
    "TemplateResolution",
    "apply_url_template",
    "derive_group_key",
    "extract_placeholders",
    "fallback_group_key",
    "is_valid_lastmod",
    "resolve_column",
    "sanitize_group_name",
    "transform_row",
    "validate_url_placeholders",
]
