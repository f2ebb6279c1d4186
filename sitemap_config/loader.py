"""
Configuration Loader (``sitemap_config.loader``).

Responsibility
--------------
Loads YAML configuration files and parses plain mappings (YAML documents,
JSON request bodies) into ``BatchConfiguration``.  Both the camelCase option
names used by callers (``maxPerFile``, ``retryAttempts`` ...) and the
snake_case field names are accepted.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong document shape or unconvertible values  -> ``ConfigurationError``.

Parsing does not range-check; call ``sitemap_config.validator`` for that.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml

from sitemap_config.schema import BatchConfiguration
from sitemap_kernel.exceptions import ConfigurationError

# camelCase option name -> dataclass field
_ALIASES: dict[str, str] = {
    "columnMapping": "column_mapping",
    "urlPattern": "url_template",
    "urlTemplate": "url_template",
    "url_pattern": "url_template",
    "maxPerFile": "max_per_file",
    "includeLastmod": "include_lastmod",
    "lastmodField": "lastmod_field",
    "maxConcurrentFiles": "max_concurrent_files",
    "retryAttempts": "retry_attempts",
    "timeoutMs": "timeout_ms",
    "retryDelayMs": "retry_delay_ms",
    "baseUrl": "base_url",
}

_INT_FIELDS = (
    "max_per_file",
    "max_concurrent_files",
    "retry_attempts",
    "timeout_ms",
    "retry_delay_ms",
)

_KNOWN_FIELDS = frozenset(BatchConfiguration.__dataclass_fields__)


def load_yaml_file(path: Path | str) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off", ""):
        return False
    if isinstance(value, int):
        return bool(value)
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def parse_configuration(data: Mapping[str, Any]) -> BatchConfiguration:
    """
    Build a ``BatchConfiguration`` from a plain mapping.

    A nested ``batch`` or ``sitemap`` section is merged over the top level so
    YAML files may group options.  Unknown keys are rejected.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            f"configuration must be a mapping, got {type(data).__name__}"
        )

    flat: dict[str, Any] = {k: v for k, v in data.items() if k not in ("batch", "sitemap")}
    for section in ("sitemap", "batch"):
        nested = data.get(section)
        if nested is None:
            continue
        if not isinstance(nested, Mapping):
            raise ConfigurationError(f"{section} section must be a mapping")
        flat.update(nested)

    kwargs: dict[str, Any] = {}
    unknown: list[str] = []
    for key, value in flat.items():
        name = _ALIASES.get(key, key)
        if name not in _KNOWN_FIELDS:
            unknown.append(key)
            continue
        kwargs[name] = value
    if unknown:
        raise ConfigurationError(
            [f"unknown configuration option: {key}" for key in sorted(unknown)]
        )

    mapping = kwargs.get("column_mapping")
    if mapping is not None and not isinstance(mapping, Mapping):
        raise ConfigurationError("column_mapping must be a mapping of field to column")
    if mapping is not None:
        kwargs["column_mapping"] = {str(k): str(v) for k, v in mapping.items()}

    for name in _INT_FIELDS:
        if name in kwargs and kwargs[name] is not None:
            try:
                kwargs[name] = int(kwargs[name])
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"{name} must be an integer, got {kwargs[name]!r}"
                ) from None

    if kwargs.get("priority") is not None:
        try:
            kwargs["priority"] = float(kwargs["priority"])
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"priority must be a number, got {kwargs['priority']!r}"
            ) from None

    if "include_lastmod" in kwargs:
        kwargs["include_lastmod"] = _as_bool("include_lastmod", kwargs["include_lastmod"])

    if kwargs.get("changefreq") == "":
        kwargs["changefreq"] = None

    kwargs.setdefault("column_mapping", {})
    kwargs.setdefault("url_template", "")
    return BatchConfiguration(**kwargs)


def load_configuration(path: Path | str) -> BatchConfiguration:
    """Read a YAML file and parse it into a ``BatchConfiguration``."""
    return parse_configuration(load_yaml_file(path))
