"""Tests for the in-memory object store."""

import base64
from xml.etree import ElementTree as ET

import pytest

from bucketview.backends.store.memory import MemoryObjectStore, format_s3_timestamp
from bucketview.listing.fetcher import parse_list_result


@pytest.fixture
def memory_store():
    store = MemoryObjectStore(bucket="media")
    for key in ["a/1.png", "a/2.png", "a/deep/3.png", "b/doc.txt", "root.txt"]:
        store.add(key, 3)
    return store


async def list_page(store, **query):
    query.setdefault("list-type", "2")
    response = await store.send("GET", "", query=query)
    assert response.status_code == 200
    return parse_list_result(response.body)


class TestMemoryObjectStore:
    """Tests for MemoryObjectStore."""

    @pytest.mark.asyncio
    async def test_put_and_get(self) -> None:
        store = MemoryObjectStore()

        put = await store.send("PUT", "x/y.txt", headers={"Content-Type": "text/plain"}, content=b"hello")
        assert put.status_code == 200

        got = await store.send("GET", "x/y.txt")
        assert got.body == b"hello"
        assert got.headers["content-type"] == "text/plain"
        assert got.headers["content-length"] == "5"
        assert got.headers["etag"] == put.headers["etag"]

    @pytest.mark.asyncio
    async def test_head_has_no_body(self, memory_store) -> None:
        response = await memory_store.send("HEAD", "a/1.png")

        assert response.status_code == 200
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_get_missing(self, memory_store) -> None:
        response = await memory_store.send("GET", "missing")

        assert response.status_code == 404
        assert b"NoSuchKey" in response.body

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, memory_store) -> None:
        assert (await memory_store.send("DELETE", "a/1.png")).status_code == 204
        assert (await memory_store.send("DELETE", "a/1.png")).status_code == 204
        assert "a/1.png" not in memory_store.objects

    @pytest.mark.asyncio
    async def test_copy(self, memory_store) -> None:
        response = await memory_store.send(
            "PUT", "c/copy.png", headers={"x-amz-copy-source": "/media/a/1.png"}
        )

        assert response.status_code == 200
        assert ET.fromstring(response.body).tag.endswith("CopyObjectResult")
        assert memory_store.objects["c/copy.png"].content == memory_store.objects["a/1.png"].content

    @pytest.mark.asyncio
    async def test_copy_escaped_source(self, memory_store) -> None:
        memory_store.add("with space.txt", 1)

        response = await memory_store.send(
            "PUT", "copied.txt", headers={"X-Amz-Copy-Source": "/media/with%20space.txt"}
        )

        assert response.status_code == 200
        assert "copied.txt" in memory_store.objects

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", ["/media/missing", "/other/a/1.png"])
    async def test_copy_missing_source(self, memory_store, source) -> None:
        response = await memory_store.send("PUT", "dst", headers={"x-amz-copy-source": source})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unsupported_method(self, memory_store) -> None:
        assert (await memory_store.send("PATCH", "a/1.png")).status_code == 405

    @pytest.mark.asyncio
    async def test_bucket_requests_must_be_listings(self, memory_store) -> None:
        assert (await memory_store.send("GET", "")).status_code == 400
        assert (await memory_store.send("DELETE", "")).status_code == 400

    @pytest.mark.asyncio
    async def test_records_calls(self, memory_store) -> None:
        await memory_store.send("GET", "a/1.png")
        await list_page(memory_store, prefix="a/")

        assert memory_store.calls[0] == ("GET", "a/1.png", {})
        assert memory_store.list_calls() == [{"list-type": "2", "prefix": "a/"}]

    def test_add_with_size(self) -> None:
        store = MemoryObjectStore()
        obj = store.add("k", 7)

        assert obj.size == 7
        assert store.keys() == ["k"]

    def test_format_s3_timestamp(self, day) -> None:
        assert format_s3_timestamp(day(2)) == "2024-01-02T12:00:00.000Z"


class TestListObjectsV2:
    """Tests for the memory store's ListObjectsV2."""

    @pytest.mark.asyncio
    async def test_flat(self, memory_store) -> None:
        page = await list_page(memory_store, prefix="a/")

        assert [c.key for c in page.contents] == ["a/1.png", "a/2.png", "a/deep/3.png"]
        assert page.name == "media"
        assert page.is_truncated is False

    @pytest.mark.asyncio
    async def test_delimiter(self, memory_store) -> None:
        page = await list_page(memory_store, prefix="a/", delimiter="/")

        assert [c.key for c in page.contents] == ["a/1.png", "a/2.png"]
        assert page.common_prefixes == ["a/deep/"]

    @pytest.mark.asyncio
    async def test_common_prefixes_count_against_max_keys(self, memory_store) -> None:
        page = await list_page(memory_store, delimiter="/", **{"max-keys": "2"})

        assert page.common_prefixes == ["a/", "b/"]
        assert page.contents == []
        assert page.is_truncated is True

    @pytest.mark.asyncio
    async def test_continuation_skips_grouped_keys(self, memory_store) -> None:
        first = await list_page(memory_store, delimiter="/", **{"max-keys": "1"})
        second = await list_page(
            memory_store,
            delimiter="/",
            **{"max-keys": "1", "continuation-token": first.next_continuation_token},
        )

        assert first.common_prefixes == ["a/"]
        assert second.common_prefixes == ["b/"]

    @pytest.mark.asyncio
    async def test_start_after(self, memory_store) -> None:
        page = await list_page(memory_store, **{"start-after": "a/deep/3.png"})
        assert [c.key for c in page.contents] == ["b/doc.txt", "root.txt"]

    @pytest.mark.asyncio
    async def test_max_keys_is_capped(self, memory_store) -> None:
        page = await list_page(memory_store, **{"max-keys": "5000"})
        assert page.max_keys == 1000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "query",
        [
            {"max-keys": "many"},
            {"max-keys": "-1"},
            {"continuation-token": "a"},
        ],
    )
    async def test_bad_arguments(self, memory_store, query) -> None:
        response = await memory_store.send("GET", "", query={"list-type": "2", **query})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_token_is_last_consumed_key(self, memory_store) -> None:
        page = await list_page(memory_store, prefix="a/", delimiter="/", **{"max-keys": "2"})

        assert base64.urlsafe_b64decode(page.next_continuation_token).decode() == "a/2.png"
