"""
Configuration Validator (``sitemap_config.validator``).

Responsibility
--------------
Checks a ``BatchConfiguration`` before a batch is admitted: required
fields, the option ranges callers may set, and template sanity.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the batch MUST
  NOT be submitted; ``require_valid`` raises ``ConfigurationError``.
* Validation warnings  -> the batch may run but the output may be odd.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from sitemap_config.schema import (
    MAX_CONCURRENT_FILES_RANGE,
    MAX_PER_FILE_RANGE,
    PRIORITY_RANGE,
    RETRY_ATTEMPTS_RANGE,
    TIMEOUT_MS_RANGE,
    BatchConfiguration,
    ChangeFrequency,
)
from sitemap_kernel.exceptions import ConfigurationError

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _check_range(
    result: ConfigValidationResult,
    name: str,
    value: object,
    bounds: tuple[int, int],
) -> None:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        result.add_error(f"{name} must be an integer between {low} and {high}")
    elif not low <= value <= high:
        result.add_error(f"{name} must be between {low} and {high}, got {value}")


def validate_configuration(config: BatchConfiguration) -> ConfigValidationResult:
    """Validate every option of a batch configuration."""
    result = ConfigValidationResult()

    if not config.column_mapping:
        result.add_error("column_mapping is required")

    template = config.url_template or ""
    if not template.strip():
        result.add_error("url_template is required")
    elif "://" not in template:
        result.add_error("url_template must be an absolute URL (missing '://')")
    elif not _PLACEHOLDER.search(template):
        result.add_warning("url_template has no placeholders; every row yields the same URL")

    if not config.grouping:
        result.add_error("grouping must not be empty")

    _check_range(result, "max_per_file", config.max_per_file, MAX_PER_FILE_RANGE)
    _check_range(
        result,
        "max_concurrent_files",
        config.max_concurrent_files,
        MAX_CONCURRENT_FILES_RANGE,
    )
    _check_range(result, "retry_attempts", config.retry_attempts, RETRY_ATTEMPTS_RANGE)
    _check_range(result, "timeout_ms", config.timeout_ms, TIMEOUT_MS_RANGE)

    if isinstance(config.retry_delay_ms, bool) or not isinstance(config.retry_delay_ms, int):
        result.add_error("retry_delay_ms must be an integer")
    elif config.retry_delay_ms < 0:
        result.add_error("retry_delay_ms must not be negative")

    if config.priority is not None:
        low, high = PRIORITY_RANGE
        if not isinstance(config.priority, (int, float)) or isinstance(config.priority, bool):
            result.add_error("priority must be a number")
        elif not low <= config.priority <= high:
            result.add_error(f"priority must be between {low} and {high}, got {config.priority}")

    if config.changefreq is not None and not isinstance(config.changefreq, ChangeFrequency):
        allowed = ", ".join(c.value for c in ChangeFrequency)
        result.add_error(f"changefreq must be one of {allowed}, got {config.changefreq!r}")

    if config.include_lastmod and not config.lastmod_field:
        result.add_error("lastmod_field is required when include_lastmod is set")

    if config.base_url is not None and "://" not in config.base_url:
        result.add_error("base_url must be an absolute URL")

    return result


def require_valid(config: BatchConfiguration) -> BatchConfiguration:
    """Return ``config`` unchanged, or raise ``ConfigurationError`` with every error."""
    result = validate_configuration(config)
    if not result.is_valid:
        raise ConfigurationError(result.errors)
    return config
