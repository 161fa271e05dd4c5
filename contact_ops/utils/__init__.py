"""
contact_ops.utils - Utility module

Common utilities including logging configuration.
"""

from contact_ops.utils.normalization import normalize_string
from contact_ops.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = ["normalize_string", "resolve_config_dir", "DEFAULT_CONFIG_DIR"]
