"""Single ListObjectsV2 call and reply parsing."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from xml.etree import ElementTree as ET

from bucketview.exceptions import UpstreamError
from bucketview.protocols.object_store import ObjectStoreClient

DEFAULT_DELIMITER = "/"
MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class ContentEntry:
    """One object reported by a listing call."""

    key: str
    size: int
    last_modified: datetime | None
    etag: str

    def is_directory_marker(self, delimiter: str = DEFAULT_DELIMITER) -> bool:
        """Zero-byte object standing in for an explicitly created folder."""
        return self.size == 0 and bool(delimiter) and self.key.endswith(delimiter)


@dataclass
class RawPage:
    """Parsed reply of one backend listing call."""

    name: str = ""
    prefix: str = ""
    delimiter: str = ""
    max_keys: int = 0
    is_truncated: bool = False
    next_continuation_token: str = ""
    common_prefixes: list[str] = field(default_factory=list)
    contents: list[ContentEntry] = field(default_factory=list)

    def last_raw_key(self) -> str | None:
        """Greatest key or common prefix in the page, in backend order."""
        candidates = []
        if self.contents:
            candidates.append(self.contents[-1].key)
        if self.common_prefixes:
            candidates.append(self.common_prefixes[-1])
        return max(candidates) if candidates else None


def clamp_page_size(page_size: int | None) -> int:
    """Out-of-range page sizes fall back to the backend maximum."""
    if page_size is None or page_size <= 0 or page_size > MAX_PAGE_SIZE:
        return MAX_PAGE_SIZE
    return page_size


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as returned in ``LastModified``."""
    if not value:
        return None
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local(child.tag) == name:
            return child.text or ""
    return ""


def parse_list_result(body: bytes) -> RawPage:
    """Parse a ``ListBucketResult`` document, with or without the S3 namespace.

    Raises:
        UpstreamError: If the document is not a listing result
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise UpstreamError(f"xml: {e}", status_code=502) from e
    if _local(root.tag) != "ListBucketResult":
        raise UpstreamError(f"xml: unexpected root element {_local(root.tag)}", status_code=502)

    page = RawPage()
    try:
        for child in root:
            tag = _local(child.tag)
            text = child.text or ""
            if tag == "Name":
                page.name = text
            elif tag == "Prefix":
                page.prefix = text
            elif tag == "Delimiter":
                page.delimiter = text
            elif tag == "MaxKeys":
                page.max_keys = int(text or 0)
            elif tag == "IsTruncated":
                page.is_truncated = text.strip().lower() == "true"
            elif tag == "NextContinuationToken":
                page.next_continuation_token = text
            elif tag == "CommonPrefixes":
                page.common_prefixes.append(_child_text(child, "Prefix"))
            elif tag == "Contents":
                page.contents.append(
                    ContentEntry(
                        key=_child_text(child, "Key"),
                        size=int(_child_text(child, "Size") or 0),
                        last_modified=parse_timestamp(_child_text(child, "LastModified")),
                        etag=_child_text(child, "ETag"),
                    )
                )
    except ValueError as e:
        raise UpstreamError(f"xml: {e}", status_code=502) from e
    return page


async def fetch_page(
    client: ObjectStoreClient,
    prefix: str = "",
    delimiter: str | None = DEFAULT_DELIMITER,
    start_after: str = "",
    page_size: int | None = MAX_PAGE_SIZE,
    continuation_token: str = "",
) -> RawPage:
    """Issue exactly one ListObjectsV2 call and parse the reply.

    Args:
        client: Signed object store client
        prefix: Only keys starting with this are listed
        delimiter: Grouping character; ``None`` requests a flat listing
        start_after: Backend returns keys strictly after this one
        page_size: Maximum entries, clamped to (0, 1000]
        continuation_token: Backend-native resume marker

    Raises:
        UpstreamError: On a non-success status or transport failure
    """
    query = {
        "list-type": "2",
        "max-keys": str(clamp_page_size(page_size)),
    }
    if delimiter is not None:
        query["delimiter"] = delimiter or DEFAULT_DELIMITER
    if prefix:
        query["prefix"] = prefix
    if start_after:
        query["start-after"] = start_after
    if continuation_token:
        query["continuation-token"] = continuation_token

    response = await client.send("GET", "", query=query)
    if not response.ok:
        raise UpstreamError(
            f"list failed: {response.status_code} {response.text.strip()}".rstrip(),
            status_code=response.status_code,
        )
    return parse_list_result(response.body)
