"""Opaque pagination cursor for hierarchical listings.

A listing walks one directory level in two phases: first the subdirectories
(common prefixes), then the files. The cursor records which phase the next
page starts in and the last key, relative to the listed prefix, that was
already emitted. On the wire it is base64url-encoded JSON without padding::

    {"p": "dir" | "file", "a": "<relative key>"}
"""

import base64
import binascii
import json
from dataclasses import dataclass

from bucketview.exceptions import InvalidCursorError

DIR_PHASE = "dir"
FILE_PHASE = "file"


@dataclass(frozen=True)
class DirCursor:
    """Resume position inside the subdirectory phase."""

    after: str = ""

    phase = DIR_PHASE


@dataclass(frozen=True)
class FileCursor:
    """Resume position inside the file phase."""

    after: str = ""

    phase = FILE_PHASE


ListingCursor = DirCursor | FileCursor

START = DirCursor()


def encode_cursor(cursor: ListingCursor) -> str:
    """Serialize a cursor to a URL-safe token without padding."""
    data = {"p": cursor.phase}
    if cursor.after:
        data["a"] = cursor.after
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(token: str | None) -> ListingCursor:
    """Parse a token produced by :func:`encode_cursor`.

    The empty token is the start of a listing. A missing or unknown phase
    resumes in the directory phase.

    Raises:
        InvalidCursorError: If the token is not a cursor
    """
    if not token:
        return START

    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeError, binascii.Error, ValueError) as e:
        raise InvalidCursorError("bad continuationToken") from e

    if not isinstance(data, dict):
        raise InvalidCursorError("bad continuationToken")
    after = data.get("a", "")
    if after is None:
        after = ""
    if not isinstance(after, str):
        raise InvalidCursorError("bad continuationToken")

    if data.get("p") == FILE_PHASE:
        return FileCursor(after)
    return DirCursor(after)
