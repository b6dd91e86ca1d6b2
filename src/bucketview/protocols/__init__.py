"""Protocol interfaces for pluggable backends."""

from bucketview.protocols.object_store import (
    ObjectStoreClient,
    StoreResponse,
    encode_key,
    object_path,
)

__all__ = [
    "ObjectStoreClient",
    "StoreResponse",
    "encode_key",
    "object_path",
]
