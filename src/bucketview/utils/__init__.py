"""Utility functions."""

from bucketview.utils.timestamps import format_timestamp
from bucketview.utils.validation import (
    is_excluded,
    normalize_excludes,
    normalize_folder,
    normalize_prefix,
    parse_limit,
    relative_key,
    require_key,
)

__all__ = [
    "format_timestamp",
    "is_excluded",
    "normalize_excludes",
    "normalize_folder",
    "normalize_prefix",
    "parse_limit",
    "relative_key",
    "require_key",
]
