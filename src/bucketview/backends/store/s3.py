"""S3-compatible object store client signed with AWS SigV4."""

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, urlencode, urlsplit

import httpx
from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import BotoCoreError

from bucketview.exceptions import InternalError, UpstreamError
from bucketview.observability import get_logger
from bucketview.protocols.object_store import StoreResponse, object_path

logger = get_logger(__name__)


class S3ObjectStore:
    """Signed client for a single bucket on an S3-compatible endpoint.

    Requests use path-style addressing (``<endpoint>/<bucket>/<key>``) and are
    signed per call. One pooled ``httpx.AsyncClient`` is shared by all requests.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        bucket: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the S3 client.

        Args:
            endpoint: Base URL of the S3 API, e.g. ``https://s3.example.com``
            bucket: Bucket every call is addressed to
            access_key: Access key id
            secret_key: Secret access key
            region: Signing region
            timeout_seconds: Per-call timeout; None waits indefinitely
            transport: Optional httpx transport (used by tests)
            **kwargs: Ignored
        """
        if not endpoint or not bucket or not access_key or not secret_key:
            raise ValueError(
                "S3ObjectStore requires endpoint, bucket, access_key, and secret_key. "
                "Use 'memory' backend for development."
            )

        parts = urlsplit(endpoint.rstrip("/"))
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Invalid S3 endpoint: {endpoint}")

        self._endpoint = f"{parts.scheme}://{parts.netloc}{parts.path}"
        self._bucket = bucket
        self.region = region
        self._signer = S3SigV4Auth(Credentials(access_key, secret_key), "s3", region)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def _build_url(self, key: str, query: Mapping[str, str] | None) -> str:
        url = self._endpoint + object_path(self._bucket, key)
        if query:
            url += "?" + urlencode(sorted(query.items()), safe="", quote_via=quote)
        return url

    def _sign(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None,
        content: bytes | None,
    ) -> dict[str, str]:
        request = AWSRequest(method=method, url=url, headers=dict(headers or {}), data=content or b"")
        try:
            self._signer.add_auth(request)
        except BotoCoreError as e:
            raise InternalError(f"sign request: {e}") from e
        return dict(request.headers.items())

    async def send(
        self,
        method: str,
        key: str = "",
        query: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> StoreResponse:
        """Sign and issue one call. HTTP error statuses are returned, not raised."""
        url = self._build_url(key, query)
        signed_headers = self._sign(method, url, headers, content)

        try:
            response = await self._client.request(
                method,
                url,
                headers=signed_headers,
                content=content,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Object store unreachable",
                context={"method": method, "key": key},
                error=e,
            )
            raise UpstreamError(f"upstream: {e}") from e

        return StoreResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def close(self) -> None:
        await self._client.aclose()
