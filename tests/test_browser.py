"""Tests for the Browser facade, backend discovery and the command line entry."""

import pytest

from bucketview import __main__ as cli
from bucketview.backends.store.memory import MemoryObjectStore
from bucketview.backends.store.s3 import S3ObjectStore
from bucketview.browser import Browser
from bucketview.config import Config
from bucketview.exceptions import UpstreamError
from bucketview.plugins import create_object_store, discover_backends, get_backend


def require_entry_points() -> None:
    if "memory" not in discover_backends("store"):
        pytest.skip("package entry points are not installed")


class TestBrowser:
    """Tests for Browser operations over a memory store."""

    @pytest.fixture
    def browser(self, store) -> Browser:
        return Browser(Config.from_dict({"listing": {"default_limit": 1}}), client=store)

    @pytest.mark.asyncio
    async def test_list_uses_configured_default_limit(self, browser: Browser) -> None:
        page = await browser.list()

        assert [entry.name for entry in page.entries] == ["a/"]
        assert page.has_more

    @pytest.mark.asyncio
    async def test_list_with_cursor(self, browser: Browser) -> None:
        first = await browser.list(limit=1)
        second = await browser.list(limit=5, cursor=first.next_token)

        assert [entry.name for entry in second.entries] == ["b/"]

    @pytest.mark.asyncio
    async def test_stats(self, browser: Browser) -> None:
        result = await browser.stats("a/")
        assert result.count == 2

    @pytest.mark.asyncio
    async def test_stats_folder_limit(self, store) -> None:
        browser = Browser(Config.from_dict({"stats": {"max_folders": 1}}), client=store)

        result = await browser.stats("")

        assert list(result.by_folder) == ["a/"]

    @pytest.mark.asyncio
    async def test_rename_and_delete_prefix(self, browser: Browser, store) -> None:
        moved = await browser.rename("a/", "z/", is_prefix=True)
        deleted = await browser.delete_prefix("z/")

        assert moved.affected == 2
        assert deleted.affected == 2
        assert store.keys() == ["b/doc.txt"]

    @pytest.mark.asyncio
    async def test_errors_propagate(self, browser: Browser, store) -> None:
        store.fail_listing_after = 0

        with pytest.raises(UpstreamError):
            await browser.stats("")

    def test_client_property(self, browser: Browser, store) -> None:
        assert browser.client is store
        assert browser.bucket == "media"

    def test_client_before_init(self) -> None:
        browser = Browser(Config())

        with pytest.raises(RuntimeError):
            browser.client
        assert browser.bucket == "bucket"

    @pytest.mark.asyncio
    async def test_context_manager_creates_and_closes_client(self) -> None:
        require_entry_points()
        browser = Browser.from_dict({"store": {"backend": "memory", "bucket": "photos"}})

        async with browser:
            assert isinstance(browser.client, MemoryObjectStore)
            assert browser.bucket == "photos"

        with pytest.raises(RuntimeError):
            browser.client


class TestPlugins:
    """Tests for entry point backend discovery."""

    def test_registered_backends(self) -> None:
        require_entry_points()

        assert get_backend("store", "memory") is MemoryObjectStore
        assert get_backend("store", "s3") is S3ObjectStore

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError, match="Backend 'gcs' not found"):
            get_backend("store", "gcs")

    def test_create_object_store(self) -> None:
        require_entry_points()

        client = create_object_store("memory", bucket="x", endpoint=None)

        assert isinstance(client, MemoryObjectStore)
        assert client.bucket == "x"

    def test_s3_backend_requires_settings(self) -> None:
        require_entry_points()

        with pytest.raises(ValueError):
            create_object_store("s3", bucket="x")


class TestMain:
    """Tests for the command line entry point."""

    def test_missing_environment(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        for name in ("S3_ENDPOINT", "S3_REGION", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "S3_BUCKET"):
            monkeypatch.delenv(name, raising=False)

        assert cli.main([]) == 2
        assert "missing env: S3_ENDPOINT" in capsys.readouterr().err

    def test_serves_from_config_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  backend: memory\n  bucket: media\n")
        served = []
        monkeypatch.setattr(Browser, "serve", lambda self: served.append(self))

        assert cli.main([str(path)]) == 0
        assert served[0].config.store.bucket == "media"

    def test_serves_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name, value in {
            "S3_ENDPOINT": "http://localhost:9000",
            "S3_REGION": "us-east-1",
            "S3_ACCESS_KEY_ID": "minio",
            "S3_SECRET_ACCESS_KEY": "minio123",
            "S3_BUCKET": "media",
        }.items():
            monkeypatch.setenv(name, value)
        served = []
        monkeypatch.setattr(Browser, "serve", lambda self: served.append(self))

        assert cli.main([]) == 0
        assert served[0].config.store.backend == "s3"
