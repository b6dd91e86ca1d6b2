"""Pytest configuration and fixtures."""

from collections.abc import Mapping
from datetime import datetime, timezone

import pytest

from bucketview.backends.store.memory import MemoryObjectStore
from bucketview.exceptions import UpstreamError
from bucketview.protocols import StoreResponse


class FailingStore(MemoryObjectStore):
    """Memory store that fails chosen calls.

    ``fail`` maps (method, key) to the status to answer with; a status of
    None raises a transport failure instead.
    """

    def __init__(self, bucket: str = "bucket", **kwargs) -> None:
        super().__init__(bucket=bucket, **kwargs)
        self.fail: dict[tuple[str, str], int | None] = {}
        self.fail_listing_after: int | None = None

    async def send(
        self,
        method: str,
        key: str = "",
        query: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> StoreResponse:
        if not key and self.fail_listing_after is not None:
            if len(self.list_calls()) >= self.fail_listing_after:
                self.calls.append((method.upper(), key, dict(query or {})))
                return StoreResponse(status_code=503, body=b"<Error><Code>SlowDown</Code></Error>")
        target = (method.upper(), key)
        if target in self.fail:
            self.calls.append((method.upper(), key, dict(query or {})))
            status = self.fail[target]
            if status is None:
                raise UpstreamError("upstream: connection reset")
            return StoreResponse(status_code=status, body=b"<Error><Code>InternalError</Code></Error>")
        return await super().send(method, key, query, headers, content)


def ts(day: int) -> datetime:
    """A UTC timestamp on the given day of January 2024."""
    return datetime(2024, 1, day, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store() -> FailingStore:
    """The example bucket: two images in a/ and a text document in b/."""
    store = FailingStore(bucket="media")
    store.add("a/1.png", 100, last_modified=ts(1))
    store.add("a/2.png", 50, last_modified=ts(2))
    store.add("b/doc.txt", 10, last_modified=ts(3))
    return store


@pytest.fixture
def empty_store() -> FailingStore:
    """A bucket without objects."""
    return FailingStore(bucket="media")


@pytest.fixture
def store_factory():
    """Build empty failing-capable memory stores."""

    def factory(bucket: str = "media") -> FailingStore:
        return FailingStore(bucket=bucket)

    return factory


@pytest.fixture
def day():
    """Timestamp helper: ``day(3)`` is noon UTC on 2024-01-03."""
    return ts
