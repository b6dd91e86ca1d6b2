"""Hierarchical listing and full enumeration over a flat object store."""

from bucketview.listing.cursor import (
    DirCursor,
    FileCursor,
    ListingCursor,
    decode_cursor,
    encode_cursor,
)
from bucketview.listing.engine import (
    DirectoryEntry,
    FileEntry,
    ListingEngine,
    ListingEntry,
    ListingPage,
)
from bucketview.listing.enumerator import iter_entries, list_all_entries, list_all_keys
from bucketview.listing.fetcher import ContentEntry, RawPage, fetch_page

__all__ = [
    "ContentEntry",
    "DirCursor",
    "DirectoryEntry",
    "FileCursor",
    "FileEntry",
    "ListingCursor",
    "ListingEngine",
    "ListingEntry",
    "ListingPage",
    "RawPage",
    "decode_cursor",
    "encode_cursor",
    "fetch_page",
    "iter_entries",
    "list_all_entries",
    "list_all_keys",
]
