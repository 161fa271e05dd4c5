"""
String normalization utilities for name matching.

Provides consistent, accent-insensitive normalization used when contacts are
selected by name.
"""

from __future__ import annotations

import re
import unicodedata


def normalize_string(value: str, strip_punctuation: bool = False) -> str:
    """
    Normalize a string for case and accent insensitive comparison.

    Args:
        value: String to normalize
        strip_punctuation: If True, remove non-alphanumeric characters.
                          If False, only normalize unicode and whitespace.

    Returns:
        Normalized lowercase string with whitespace collapsed
    """
    if not value:
        return ""

    # Normalize unicode (decompose accents, etc.)
    normalized = unicodedata.normalize("NFKD", value)

    # Remove combining characters (accents)
    normalized = "".join(c for c in normalized if not unicodedata.combining(c))

    normalized = normalized.lower()

    if strip_punctuation:
        normalized = re.sub(r"[^a-z0-9\s]", "", normalized)

    return re.sub(r"\s+", " ", normalized).strip()
