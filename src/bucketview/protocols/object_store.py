"""ObjectStoreClient protocol for signed object store backends."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import quote


@dataclass(frozen=True)
class StoreResponse:
    """Raw reply to a single backend call."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class ObjectStoreClient(Protocol):
    """Capability to issue one signed call against a single bucket.

    Implementations never retry. Transport failures raise
    :class:`bucketview.exceptions.UpstreamError` without a status code;
    HTTP error statuses are returned, not raised.
    """

    @property
    def bucket(self) -> str:
        """Name of the bucket every call is addressed to."""
        ...

    async def send(
        self,
        method: str,
        key: str = "",
        query: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> StoreResponse:
        """Issue one call against ``/<bucket>/<key>`` (bucket root when key is empty)."""
        ...

    async def close(self) -> None:
        """Release pooled connections."""
        ...


def encode_key(key: str) -> str:
    """Percent-encode an object key segment by segment.

    Empty segments are kept so that folder markers (``a/``) and keys with
    repeated slashes address the object they name.
    """
    return "/".join(quote(segment, safe="") for segment in key.split("/"))


def object_path(bucket: str, key: str = "") -> str:
    """Escaped request path for a bucket or an object inside it."""
    path = "/" + quote(bucket, safe="")
    encoded = encode_key(key)
    if encoded:
        path += "/" + encoded
    return path
