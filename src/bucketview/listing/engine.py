"""Hierarchical listing over a flat, token-paginated object store.

One call produces one page of at most ``limit`` entries describing a single
directory level under ``prefix``: every subdirectory (common prefix) first,
then every file, both in backend key order. The page ends with an opaque
cursor from which the next call resumes without omission or duplication.

The backend is driven with ``start-after`` markers derived from the cursor
rather than with its own continuation tokens, so a cursor stays valid across
requests. Each call issues at most ``max_fetch_attempts`` listing requests.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bucketview.listing.cursor import (
    DirCursor,
    FileCursor,
    ListingCursor,
    decode_cursor,
    encode_cursor,
)
from bucketview.listing.fetcher import (
    DEFAULT_DELIMITER,
    MAX_PAGE_SIZE,
    RawPage,
    fetch_page,
)
from bucketview.observability import Timer, emit_counter, emit_timer, get_logger
from bucketview.protocols.object_store import ObjectStoreClient
from bucketview.utils.timestamps import format_timestamp
from bucketview.utils.validation import (
    is_excluded,
    normalize_excludes,
    normalize_prefix,
    relative_key,
)

logger = get_logger(__name__)

DEFAULT_LIMIT = 50
MAX_FETCH_ATTEMPTS = 200

# Sorts after every continuation of a key (U+10FFFF is the largest code point)
START_AFTER_SENTINEL = "\U0010ffff"


@dataclass(frozen=True)
class DirectoryEntry:
    """A subdirectory of the listed level."""

    name: str
    prefix: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "prefix", "name": self.name, "prefix": self.prefix}


@dataclass(frozen=True)
class FileEntry:
    """An object directly under the listed level."""

    name: str
    key: str
    size: int
    last_modified: datetime | None
    etag: str

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "content",
            "name": self.name,
            "key": self.key,
            "size": self.size,
        }
        if self.last_modified is not None:
            data["lastModified"] = format_timestamp(self.last_modified)
        if self.etag:
            data["etag"] = self.etag
        return data


ListingEntry = DirectoryEntry | FileEntry


@dataclass
class ListingPage:
    """One page of a hierarchical listing."""

    prefix: str
    delimiter: str
    entries: list[ListingEntry] = field(default_factory=list)
    next_cursor: ListingCursor | None = None
    fetches: int = 0

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None

    @property
    def next_token(self) -> str | None:
        if self.next_cursor is None:
            return None
        return encode_cursor(self.next_cursor)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "prefix": self.prefix,
            "delimiter": self.delimiter,
            "items": [entry.to_dict() for entry in self.entries],
        }
        if self.next_cursor is not None:
            data["nextContinuationToken"] = self.next_token
        data["isTruncated"] = self.has_more
        return data


def advance_marker(after: str, delimiter: str) -> str:
    """Smallest start-after marker that skips ``after`` and everything below it.

    A directory marker ending in a single-character delimiter has the
    delimiter replaced by its successor character (``a/`` becomes ``a0``);
    anything else gets the sentinel appended.
    """
    if not after:
        return ""
    if len(delimiter) == 1 and after.endswith(delimiter):
        return after[:-1] + chr(ord(delimiter) + 1)
    return after + START_AFTER_SENTINEL


def resume_marker(after: str, delimiter: str) -> str:
    """Start-after marker for resuming behind ``after``.

    A directory (ending in the delimiter) is skipped together with its
    children. An object key has no children and is used as is, so keys that
    merely start with it (``foo`` then ``foobar/``) are still listed.
    """
    if after.endswith(delimiter):
        return advance_marker(after, delimiter)
    return after


def _trailing_segment(path: str, delimiter: str) -> str:
    return path.rsplit(delimiter, 1)[-1]


class ListingEngine:
    """Builds cursor-resumable directory listings from raw backend pages.

    Example:
        engine = ListingEngine(client)
        page = await engine.list(prefix="photos/", limit=100)
        while page.has_more:
            page = await engine.list(prefix="photos/", limit=100, cursor=page.next_token)
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        default_limit: int = DEFAULT_LIMIT,
        page_size: int = MAX_PAGE_SIZE,
        max_fetch_attempts: int = MAX_FETCH_ATTEMPTS,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Signed object store client
            default_limit: Page size used when the caller gives none
            page_size: Backend page size for the directory phase
            max_fetch_attempts: Backend calls allowed per ``list`` call
        """
        self.client = client
        self.default_limit = default_limit
        self.page_size = page_size
        self.max_fetch_attempts = max_fetch_attempts

    async def list(
        self,
        prefix: str = "",
        delimiter: str = DEFAULT_DELIMITER,
        limit: int | None = None,
        exclude_prefixes: Iterable[str] | None = None,
        cursor: str | ListingCursor | None = None,
    ) -> ListingPage:
        """Return one page of the directory level under ``prefix``.

        Args:
            prefix: Level to list; leading slashes are ignored
            delimiter: Path separator, ``/`` when empty
            limit: Maximum entries in the page
            exclude_prefixes: Entries whose path relative to ``prefix`` starts
                with any of these are skipped
            cursor: Token (or decoded cursor) returned by the previous page

        Raises:
            InvalidCursorError: If the token cannot be decoded
            UpstreamError: If any backend call fails
        """
        prefix = normalize_prefix(prefix)
        delimiter = delimiter or DEFAULT_DELIMITER
        if limit is None or limit < 1:
            limit = self.default_limit
        excludes = normalize_excludes(exclude_prefixes)
        position = cursor if isinstance(cursor, (DirCursor, FileCursor)) else decode_cursor(cursor)

        result = ListingPage(prefix=prefix, delimiter=delimiter)
        seen_dirs: set[str] = set()
        # Widened after a file page that carried no usable entries
        file_page_size = min(limit, self.page_size)

        with Timer() as timer:
            while result.fetches < self.max_fetch_attempts:
                result.fetches += 1

                if isinstance(position, DirCursor):
                    page = await fetch_page(
                        self.client,
                        prefix=prefix,
                        delimiter=delimiter,
                        start_after=self._start_after(prefix, resume_marker(position.after, delimiter)),
                        page_size=self.page_size,
                    )
                    position, done = self._collect_directories(
                        page, prefix, delimiter, excludes, seen_dirs, position, result, limit
                    )
                else:
                    page = await fetch_page(
                        self.client,
                        prefix=prefix,
                        delimiter=delimiter,
                        start_after=self._start_after(prefix, resume_marker(position.after, delimiter)),
                        page_size=file_page_size,
                    )
                    position, done, productive = self._collect_files(
                        page, prefix, delimiter, excludes, position, result, limit
                    )
                    if not productive:
                        file_page_size = self.page_size

                if done:
                    break
            else:
                logger.warning(
                    "Listing stopped at fetch bound",
                    context={"prefix": prefix, "fetches": result.fetches, "items": len(result.entries)},
                )
                emit_counter("listing.fetch_bound_reached")
                result.next_cursor = None

        logger.debug(
            "Listing page built",
            context={
                "prefix": prefix,
                "items": len(result.entries),
                "fetches": result.fetches,
                "has_more": result.has_more,
            },
            duration_ms=timer.duration_ms,
        )
        emit_timer("listing.duration", timer.duration_ms)
        emit_counter("listing.pages")
        return result

    @staticmethod
    def _start_after(prefix: str, marker: str) -> str:
        return prefix + marker if marker else ""

    def _collect_directories(
        self,
        page: RawPage,
        prefix: str,
        delimiter: str,
        excludes: Sequence[str],
        seen_dirs: set[str],
        position: DirCursor,
        result: ListingPage,
        limit: int,
    ) -> tuple[ListingCursor, bool]:
        """Emit new subdirectories from one page.

        Returns the position to continue from and whether the call is finished.
        """
        emitted = 0
        for common_prefix in page.common_prefixes:
            rel = relative_key(common_prefix, prefix)
            if not rel or not rel.endswith(delimiter):
                continue
            if is_excluded(rel, excludes) or common_prefix in seen_dirs:
                continue
            seen_dirs.add(common_prefix)

            name = _trailing_segment(rel[:-len(delimiter)], delimiter) + delimiter
            result.entries.append(DirectoryEntry(name=name, prefix=common_prefix))
            position = DirCursor(rel)
            emitted += 1
            if len(result.entries) >= limit:
                result.next_cursor = position
                return position, True

        if not page.is_truncated:
            # Directory level exhausted; files follow in the same call
            return FileCursor(), False

        last = page.last_raw_key()
        if last is None:
            logger.warning("Truncated listing page without entries", context={"prefix": prefix})
            return FileCursor(), False
        # Everything in this page has been considered; skip past it
        return DirCursor(relative_key(last, prefix)), False

    def _collect_files(
        self,
        page: RawPage,
        prefix: str,
        delimiter: str,
        excludes: Sequence[str],
        position: FileCursor,
        result: ListingPage,
        limit: int,
    ) -> tuple[ListingCursor, bool, bool]:
        """Emit files from one page.

        Returns the position to continue from, whether the call is finished,
        and whether the page contributed any entry.
        """
        # The object named exactly like the listed prefix is the level itself
        usable = [
            entry
            for entry in page.contents
            if not entry.is_directory_marker(delimiter)
            and relative_key(entry.key, prefix)
            and not is_excluded(relative_key(entry.key, prefix), excludes)
        ]

        for index, entry in enumerate(usable):
            rel = relative_key(entry.key, prefix)
            result.entries.append(
                FileEntry(
                    name=_trailing_segment(entry.key, delimiter),
                    key=entry.key,
                    size=entry.size,
                    last_modified=entry.last_modified,
                    etag=entry.etag,
                )
            )
            position = FileCursor(rel)
            if len(result.entries) >= limit:
                if page.is_truncated or index + 1 < len(usable):
                    result.next_cursor = position
                return position, True, True

        if not page.is_truncated:
            return position, True, bool(usable)

        last = page.last_raw_key()
        if last is None:
            logger.warning("Truncated listing page without entries", context={"prefix": prefix})
            return position, True, bool(usable)
        return FileCursor(relative_key(last, prefix)), False, bool(usable)
