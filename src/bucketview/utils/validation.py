"""Input normalization for prefixes, keys and query parameters."""

from collections.abc import Iterable

from bucketview.exceptions import ValidationError


def normalize_prefix(prefix: str | None) -> str:
    """Strip leading slashes; keys never start with one."""
    return (prefix or "").lstrip("/")


def normalize_folder(prefix: str | None, delimiter: str = "/") -> str:
    """Normalize a folder prefix so that it ends with the delimiter.

    The empty prefix (bucket root) stays empty.
    """
    prefix = normalize_prefix(prefix)
    if prefix and not prefix.endswith(delimiter):
        prefix += delimiter
    return prefix


def normalize_excludes(values: Iterable[str] | None) -> list[str]:
    """Split comma-separated entries, strip whitespace and leading slashes, drop blanks."""
    result = []
    for value in values or ():
        for part in value.split(","):
            part = part.strip().lstrip("/").strip()
            if part:
                result.append(part)
    return result


def is_excluded(relative: str, excludes: Iterable[str]) -> bool:
    """Whether a path relative to the listed prefix starts with any exclude prefix."""
    return any(relative.startswith(ex) for ex in excludes)


def relative_key(key: str, prefix: str) -> str:
    """Key with the listed prefix removed."""
    if prefix and key.startswith(prefix):
        return key[len(prefix):]
    return key


def parse_limit(value: str | None, default: int) -> int:
    """Parse a page size. Missing, non-numeric and non-positive values use the default."""
    if not value:
        return default
    try:
        limit = int(value)
    except ValueError:
        return default
    return limit if limit > 0 else default


def require_key(value: str | None, name: str) -> str:
    """Validate an exact object key.

    Raises:
        ValidationError: If the key is empty
    """
    key = normalize_prefix(value)
    if not key:
        raise ValidationError(f"{name} cannot be empty")
    return key
