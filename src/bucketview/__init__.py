"""Bucketview - directory-oriented HTTP view over an S3-compatible bucket."""

from bucketview.browser import Browser
from bucketview.bulk import BulkMutator, BulkResult
from bucketview.config import Config
from bucketview.exceptions import (
    BucketViewError,
    ConfigError,
    InternalError,
    InvalidCursorError,
    UpstreamError,
    ValidationError,
)
from bucketview.listing import (
    DirCursor,
    DirectoryEntry,
    FileCursor,
    FileEntry,
    ListingEngine,
    ListingPage,
    decode_cursor,
    encode_cursor,
)
from bucketview.observability import (
    LogLevel,
    RequestContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
)
from bucketview.stats import StatsAggregator, StatsResult

__version__ = "0.1.0"
__all__ = [
    # Core
    "Browser",
    "Config",
    # Listing
    "DirCursor",
    "DirectoryEntry",
    "FileCursor",
    "FileEntry",
    "ListingEngine",
    "ListingPage",
    "decode_cursor",
    "encode_cursor",
    # Traversal
    "BulkMutator",
    "BulkResult",
    "StatsAggregator",
    "StatsResult",
    # Errors
    "BucketViewError",
    "ConfigError",
    "InternalError",
    "InvalidCursorError",
    "UpstreamError",
    "ValidationError",
    # Observability
    "LogLevel",
    "RequestContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
]
