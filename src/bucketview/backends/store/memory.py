"""In-memory object store speaking the S3 wire protocol."""

import base64
import binascii
import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote
from xml.etree import ElementTree as ET

from bucketview.protocols.object_store import StoreResponse

S3_XMLNS = "http://s3.amazonaws.com/doc/2006-03-01/"
MAX_KEYS_LIMIT = 1000


@dataclass
class StoredObject:
    """An object held by the memory store."""

    content: bytes
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def etag(self) -> str:
        return '"' + hashlib.md5(self.content).hexdigest() + '"'


def format_s3_timestamp(value: datetime) -> str:
    """Render a timestamp the way S3 does (millisecond precision, Z suffix)."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _error(status_code: int, code: str, message: str) -> StoreResponse:
    root = ET.Element("Error")
    ET.SubElement(root, "Code").text = code
    ET.SubElement(root, "Message").text = message
    return StoreResponse(
        status_code=status_code,
        headers={"content-type": "application/xml"},
        body=ET.tostring(root, encoding="utf-8", xml_declaration=True),
    )


class MemoryObjectStore:
    """Single-bucket object store kept in a dict.

    Suitable for development and testing. Data is lost on restart. Implements
    ListObjectsV2 (prefix, delimiter, max-keys, start-after,
    continuation-token), GET/HEAD/PUT/DELETE on objects and server-side copy
    via ``x-amz-copy-source``. Every call is recorded in ``calls``.
    """

    def __init__(self, bucket: str = "bucket", **kwargs: Any) -> None:
        """Initialize memory store.

        Args:
            bucket: Bucket name reported in listings and expected in copy sources
            **kwargs: Ignored (for compatibility with other backends)
        """
        self._bucket = bucket or "bucket"
        self.objects: dict[str, StoredObject] = {}
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    @property
    def bucket(self) -> str:
        return self._bucket

    def add(
        self,
        key: str,
        content: bytes | int = b"",
        last_modified: datetime | None = None,
    ) -> StoredObject:
        """Seed an object directly. An int ``content`` creates that many bytes."""
        if isinstance(content, int):
            content = b"x" * content
        obj = StoredObject(content=content)
        if last_modified is not None:
            obj.last_modified = last_modified
        self.objects[key] = obj
        return obj

    def keys(self) -> list[str]:
        return sorted(self.objects)

    def list_calls(self) -> list[dict[str, str]]:
        """Query parameters of every listing call made so far."""
        return [query for method, key, query in self.calls if method == "GET" and not key and "list-type" in query]

    async def send(
        self,
        method: str,
        key: str = "",
        query: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
    ) -> StoreResponse:
        method = method.upper()
        query = dict(query or {})
        headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.calls.append((method, key, query))

        if not key:
            if method in ("GET", "HEAD") and query.get("list-type") == "2":
                return self._list_objects_v2(query)
            return _error(400, "InvalidRequest", "Only ListObjectsV2 is supported on the bucket")

        if method in ("GET", "HEAD"):
            return self._get_object(key, include_body=method == "GET")
        if method == "PUT":
            if "x-amz-copy-source" in headers:
                return self._copy_object(headers["x-amz-copy-source"], key)
            return self._put_object(key, content or b"", headers.get("content-type"))
        if method == "DELETE":
            self.objects.pop(key, None)
            return StoreResponse(status_code=204)
        return _error(405, "MethodNotAllowed", f"{method} is not allowed")

    async def close(self) -> None:
        return None

    def _get_object(self, key: str, include_body: bool) -> StoreResponse:
        obj = self.objects.get(key)
        if obj is None:
            return _error(404, "NoSuchKey", "The specified key does not exist.")
        headers = {
            "content-length": str(obj.size),
            "etag": obj.etag,
            "last-modified": obj.last_modified.strftime("%a, %d %b %Y %H:%M:%S GMT"),
        }
        if obj.content_type:
            headers["content-type"] = obj.content_type
        return StoreResponse(status_code=200, headers=headers, body=obj.content if include_body else b"")

    def _put_object(self, key: str, content: bytes, content_type: str | None) -> StoreResponse:
        obj = StoredObject(content=content, content_type=content_type)
        self.objects[key] = obj
        return StoreResponse(status_code=200, headers={"etag": obj.etag})

    def _copy_object(self, copy_source: str, key: str) -> StoreResponse:
        bucket, _, source_key = unquote(copy_source).lstrip("/").partition("/")
        if bucket != self._bucket:
            return _error(404, "NoSuchBucket", "The specified bucket does not exist.")
        source = self.objects.get(source_key)
        if source is None:
            return _error(404, "NoSuchKey", "The specified key does not exist.")

        copied = StoredObject(content=source.content, content_type=source.content_type)
        self.objects[key] = copied

        root = ET.Element("CopyObjectResult", xmlns=S3_XMLNS)
        ET.SubElement(root, "LastModified").text = format_s3_timestamp(copied.last_modified)
        ET.SubElement(root, "ETag").text = copied.etag
        return StoreResponse(
            status_code=200,
            headers={"content-type": "application/xml"},
            body=ET.tostring(root, encoding="utf-8", xml_declaration=True),
        )

    def _list_objects_v2(self, query: dict[str, str]) -> StoreResponse:
        prefix = query.get("prefix", "")
        delimiter = query.get("delimiter", "")
        try:
            max_keys = min(int(query.get("max-keys", MAX_KEYS_LIMIT)), MAX_KEYS_LIMIT)
        except ValueError:
            return _error(400, "InvalidArgument", "max-keys must be an integer")
        if max_keys < 0:
            return _error(400, "InvalidArgument", "max-keys must be non-negative")

        token = query.get("continuation-token")
        if token:
            try:
                marker = base64.urlsafe_b64decode(token.encode()).decode()
            except (binascii.Error, UnicodeDecodeError):
                return _error(400, "InvalidArgument", "The continuation token provided is incorrect")
        else:
            marker = query.get("start-after", "")

        common_prefixes: list[str] = []
        contents: list[str] = []
        last_key = ""
        truncated = False
        for key in sorted(self.objects):
            if not key.startswith(prefix) or key <= marker:
                continue

            group = None
            if delimiter:
                rest = key[len(prefix):]
                idx = rest.find(delimiter)
                if idx >= 0:
                    group = prefix + rest[:idx + len(delimiter)]
                    if common_prefixes and common_prefixes[-1] == group:
                        # Keys under an emitted common prefix are consumed silently
                        last_key = key
                        continue

            if len(common_prefixes) + len(contents) >= max_keys:
                truncated = True
                break
            if group is not None:
                common_prefixes.append(group)
            else:
                contents.append(key)
            last_key = key

        root = ET.Element("ListBucketResult", xmlns=S3_XMLNS)
        ET.SubElement(root, "Name").text = self._bucket
        ET.SubElement(root, "Prefix").text = prefix
        if delimiter:
            ET.SubElement(root, "Delimiter").text = delimiter
        ET.SubElement(root, "MaxKeys").text = str(max_keys)
        ET.SubElement(root, "KeyCount").text = str(len(common_prefixes) + len(contents))
        ET.SubElement(root, "IsTruncated").text = "true" if truncated else "false"
        if token:
            ET.SubElement(root, "ContinuationToken").text = token
        if truncated:
            ET.SubElement(root, "NextContinuationToken").text = (
                base64.urlsafe_b64encode(last_key.encode()).decode()
            )
        for key in contents:
            obj = self.objects[key]
            item = ET.SubElement(root, "Contents")
            ET.SubElement(item, "Key").text = key
            ET.SubElement(item, "LastModified").text = format_s3_timestamp(obj.last_modified)
            ET.SubElement(item, "ETag").text = obj.etag
            ET.SubElement(item, "Size").text = str(obj.size)
            ET.SubElement(item, "StorageClass").text = "STANDARD"
        for group in common_prefixes:
            item = ET.SubElement(root, "CommonPrefixes")
            ET.SubElement(item, "Prefix").text = group

        return StoreResponse(
            status_code=200,
            headers={"content-type": "application/xml"},
            body=ET.tostring(root, encoding="utf-8", xml_declaration=True),
        )
