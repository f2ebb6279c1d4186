"""
Batch configuration: schema, YAML loader and validator.

Public surface::

    from sitemap_config import BatchConfiguration, load_configuration, require_valid
"""

from sitemap_config.loader import (
    load_configuration,
    load_yaml_file,
    parse_configuration,
)
from sitemap_config.schema import (
    GROUPING_AUTO,
    GROUPING_NONE,
    GROUPING_PRESERVE,
    BatchConfiguration,
    ChangeFrequency,
)
from sitemap_config.validator import (
    ConfigValidationResult,
    require_valid,
    validate_configuration,
)

__all__ = [
    "BatchConfiguration",
    "ChangeFrequency",
    "ConfigValidationResult",
    "GROUPING_AUTO",
    "GROUPING_NONE",
    "GROUPING_PRESERVE",
    "load_configuration",
    "load_yaml_file",
    "parse_configuration",
    "require_valid",
    "validate_configuration",
]
