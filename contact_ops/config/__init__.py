"""
contact_ops.config - Configuration management module

Contains configuration loading and validation.
"""

from contact_ops.config.loader import (
    DEFAULT_CONFIG_FILE,
    VALID_KEYS,
    ConfigError,
    ConfigLoader,
)

__all__ = ["ConfigLoader", "ConfigError", "DEFAULT_CONFIG_FILE", "VALID_KEYS"]
