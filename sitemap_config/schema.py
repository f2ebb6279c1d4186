"""
BatchConfiguration schema.

One immutable configuration governs a whole batch: how rows become URL
records (column mapping, URL template, last-modified handling), how records
are grouped and chunked into sitemap files, and how the scheduler runs the
batch (concurrency, retries, timeout).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

# ---------------------------------------------------------------------------
# Limits and defaults
# ---------------------------------------------------------------------------

MAX_URLS_PER_SITEMAP = 50_000

MAX_PER_FILE_RANGE = (1, MAX_URLS_PER_SITEMAP)
MAX_CONCURRENT_FILES_RANGE = (1, 10)
RETRY_ATTEMPTS_RANGE = (0, 5)
TIMEOUT_MS_RANGE = (30_000, 600_000)
PRIORITY_RANGE = (0.0, 1.0)

DEFAULT_MAX_CONCURRENT_FILES = 3
DEFAULT_RETRY_ATTEMPTS = 2
DEFAULT_TIMEOUT_MS = 300_000
DEFAULT_RETRY_DELAY_MS = 2_000

# ---------------------------------------------------------------------------
# Grouping modes
# ---------------------------------------------------------------------------

GROUPING_NONE = "none"
GROUPING_AUTO = "auto"
GROUPING_PRESERVE = "preserve"

# Older configurations spell "preserve" as "group".
_GROUPING_ALIASES = {"group": GROUPING_PRESERVE, "preserve-groups": GROUPING_PRESERVE}


def normalize_grouping(grouping: str) -> str:
    """
    Return the canonical grouping mode, or the explicit field name.

    Modes and aliases match exactly, so a column named ``Group`` or
    ``None`` is still a field name.
    """
    value = (grouping or "").strip()
    return _GROUPING_ALIASES.get(value, value)


class ChangeFrequency(str, Enum):
    """Allowed ``<changefreq>`` values of the sitemap protocol."""

    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BatchConfiguration:
    """
    Immutable configuration for one batch.

    ``column_mapping`` maps logical field names to source column headers;
    the ``link`` key designates the URL column used by ``{link}``.
    ``grouping`` is ``none``, ``auto``, ``preserve`` or an explicit column.
    Range checks live in ``sitemap_config.validator``.
    """

    column_mapping: Mapping[str, str]
    url_template: str
    grouping: str = GROUPING_NONE
    max_per_file: int = MAX_URLS_PER_SITEMAP
    include_lastmod: bool = False
    lastmod_field: str = "lastmod"
    changefreq: ChangeFrequency | None = None
    priority: float | None = None
    max_concurrent_files: int = DEFAULT_MAX_CONCURRENT_FILES
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    base_url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "column_mapping", MappingProxyType(dict(self.column_mapping or {}))
        )
        object.__setattr__(self, "grouping", normalize_grouping(self.grouping))
        if isinstance(self.changefreq, str) and not isinstance(
            self.changefreq, ChangeFrequency
        ):
            try:
                object.__setattr__(self, "changefreq", ChangeFrequency(self.changefreq))
            except ValueError:
                # Left as a plain string; the validator reports it.
                pass

    @property
    def grouping_field(self) -> str | None:
        """Explicit column name when grouping names a field, else None."""
        if self.grouping in (GROUPING_NONE, GROUPING_AUTO, GROUPING_PRESERVE):
            return None
        return self.grouping

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def retry_delay_seconds(self, attempt: int) -> float:
        """Linear backoff: base delay times the attempt number."""
        return self.retry_delay_ms * attempt / 1000.0

    def to_dict(self) -> dict[str, object]:
        """camelCase option view, matching the external option names."""
        return {
            "columnMapping": dict(self.column_mapping),
            "urlPattern": self.url_template,
            "grouping": self.grouping,
            "maxPerFile": self.max_per_file,
            "includeLastmod": self.include_lastmod,
            "lastmodField": self.lastmod_field,
            "changefreq": (
                self.changefreq.value
                if isinstance(self.changefreq, ChangeFrequency)
                else self.changefreq
            ),
            "priority": self.priority,
            "maxConcurrentFiles": self.max_concurrent_files,
            "retryAttempts": self.retry_attempts,
            "timeoutMs": self.timeout_ms,
            "retryDelayMs": self.retry_delay_ms,
            "baseUrl": self.base_url,
        }
