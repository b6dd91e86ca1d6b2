"""Browser facade tying configuration, the store client and the operations together."""

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from bucketview.bulk import BulkMutator, BulkResult
from bucketview.config import Config
from bucketview.listing.engine import ListingEngine, ListingPage
from bucketview.observability import RequestContext, configure_logging, get_logger
from bucketview.plugins import create_object_store
from bucketview.protocols import ObjectStoreClient
from bucketview.stats import StatsAggregator, StatsResult

logger = get_logger(__name__)


class Browser:
    """Directory-oriented view of one bucket.

    Example usage:
        browser = Browser.from_config("config.yaml")

        # Start HTTP server
        browser.serve(port=8080)

        # Or use directly
        async with browser:
            page = await browser.list(prefix="photos/", limit=100)
            stats = await browser.stats("photos/")
    """

    def __init__(self, config: Config, client: ObjectStoreClient | None = None) -> None:
        """Initialize the browser.

        Args:
            config: Service configuration
            client: Pre-built store client; created from ``config.store`` when omitted
        """
        self.config = config
        self._client = client
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, path: str | Path) -> "Browser":
        """Create a Browser from a YAML or JSON configuration file."""
        return cls(Config.from_file(path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "Browser":
        """Create a Browser from a configuration dictionary."""
        return cls(Config.from_dict(config_dict))

    @classmethod
    def from_env(cls) -> "Browser":
        """Create a Browser from S3_* environment variables."""
        return cls(Config.from_env())

    async def _ensure_client(self) -> ObjectStoreClient:
        """Lazily create the store client on first use."""
        if self._client is not None:
            return self._client

        async with self._init_lock:
            if self._client is None:
                store = self.config.store
                self._client = create_object_store(
                    store.backend,
                    endpoint=store.endpoint,
                    region=store.region,
                    bucket=store.bucket,
                    access_key=store.access_key,
                    secret_key=store.secret_key,
                    timeout_seconds=store.timeout_seconds,
                )
                logger.info(
                    "Object store client created",
                    context={"backend": store.backend, "bucket": store.bucket},
                )
        return self._client

    @property
    def client(self) -> ObjectStoreClient:
        """Get the store client."""
        if self._client is None:
            raise RuntimeError("Browser not initialized. Use async context manager or call an operation first.")
        return self._client

    @property
    def bucket(self) -> str:
        return self._client.bucket if self._client is not None else self.config.store.bucket

    async def list(
        self,
        prefix: str = "",
        delimiter: str = "/",
        limit: int | None = None,
        exclude_prefixes: Iterable[str] | None = None,
        cursor: str | None = None,
    ) -> ListingPage:
        """One page of the directory level under ``prefix``."""
        client = await self._ensure_client()
        listing = self.config.listing
        engine = ListingEngine(
            client,
            default_limit=listing.default_limit,
            page_size=listing.page_size,
            max_fetch_attempts=listing.max_fetch_attempts,
        )
        with RequestContext.bind(operation="list", bucket=client.bucket):
            return await engine.list(
                prefix=prefix,
                delimiter=delimiter,
                limit=limit,
                exclude_prefixes=exclude_prefixes,
                cursor=cursor,
            )

    async def stats(self, prefix: str = "") -> StatsResult:
        """Aggregate statistics for every object under ``prefix``."""
        client = await self._ensure_client()
        aggregator = StatsAggregator(client, max_folders=self.config.stats.max_folders)
        with RequestContext.bind(operation="stats", bucket=client.bucket):
            return await aggregator.stats(prefix)

    async def rename(self, src: str, dst: str, is_prefix: bool = False) -> BulkResult:
        """Move an object or a whole prefix."""
        client = await self._ensure_client()
        with RequestContext.bind(operation="rename", bucket=client.bucket):
            return await BulkMutator(client).rename(src, dst, is_prefix)

    async def delete_prefix(self, prefix: str) -> BulkResult:
        """Delete every object under a prefix."""
        client = await self._ensure_client()
        with RequestContext.bind(operation="delete_prefix", bucket=client.bucket):
            return await BulkMutator(client).delete_prefix(prefix)

    def serve(
        self,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        """Start the HTTP server.

        Args:
            host: Host to bind to (defaults to config value)
            port: Port to bind to (defaults to config value)
        """
        import uvicorn

        from bucketview.server.app import create_app

        configure_logging(self.config.logging.level, self.config.logging.format)
        app = create_app(self)
        logger.info(
            "Serving bucket",
            context={
                "bucket": self.config.store.bucket,
                "endpoint": self.config.store.endpoint,
                "backend": self.config.store.backend,
            },
        )
        uvicorn.run(
            app,
            host=host or self.config.server.host,
            port=port or self.config.server.port,
            log_config=None,
        )

    async def aclose(self) -> None:
        """Close the store client if one was created."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "Browser":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
