"""Usage statistics over every object under a prefix."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bucketview.listing.enumerator import iter_entries
from bucketview.observability import Timer, emit_timer, get_logger
from bucketview.protocols.object_store import ObjectStoreClient
from bucketview.utils.timestamps import format_timestamp

logger = get_logger(__name__)

MAX_FOLDERS = 1000

KIND_EXTENSIONS: dict[str, frozenset[str]] = {
    "image": frozenset({"png", "jpg", "jpeg", "gif", "webp", "bmp", "svg", "avif"}),
    "video": frozenset({
        "mp4", "mkv", "webm", "avi", "mov", "m4v", "mpg", "mpeg", "flv", "3gp",
        "wmv", "ogv", "mts", "m2ts", "vob",
    }),
    "audio": frozenset({
        "mp3", "flac", "wav", "m4a", "aac", "ogg", "opus", "aiff", "aif", "alac",
        "wma", "amr", "midi", "mid",
    }),
    "pdf": frozenset({"pdf"}),
    "markdown": frozenset({"md", "markdown", "mdown", "mkd", "rmd"}),
    "doc": frozenset({"doc", "docx", "rtf", "txt", "odt"}),
    "spreadsheet": frozenset({
        "xls", "xlsx", "xlsm", "xlsb", "xlt", "ods", "csv", "tsv", "numbers", "parquet",
    }),
    "presentation": frozenset({"ppt", "pptx", "pps", "ppsx", "odp", "key"}),
    "archive": frozenset({"zip", "rar", "7z", "tar", "gz", "tgz", "bz2", "tbz", "xz", "txz", "zst"}),
    "code": frozenset({
        "gitignore", "js", "ts", "jsx", "tsx", "json", "yaml", "yml", "toml", "ini",
        "sh", "bash", "zsh", "ps1", "py", "rb", "php", "java", "go", "rs", "c",
        "cpp", "h", "cs", "swift", "sql",
    }),
}

_KIND_BY_EXTENSION = {ext: kind for kind, exts in KIND_EXTENSIONS.items() for ext in exts}


def detect_kind(key: str) -> str:
    """Classify a key by the lowercased text after its last dot."""
    lowered = key.lower()
    idx = lowered.rfind(".")
    ext = lowered[idx + 1:] if idx >= 0 else ""
    return _KIND_BY_EXTENSION.get(ext, "other")


@dataclass
class Aggregate:
    """Object count and byte total."""

    count: int = 0
    bytes: int = 0

    def add(self, size: int) -> None:
        self.count += 1
        self.bytes += size

    def to_dict(self) -> dict[str, int]:
        return {"count": self.count, "bytes": self.bytes}


@dataclass
class StatsResult:
    """Aggregated statistics for a prefix."""

    prefix: str
    count: int = 0
    total_bytes: int = 0
    newest: datetime | None = None
    oldest: datetime | None = None
    by_type: dict[str, Aggregate] = field(default_factory=dict)
    by_folder: dict[str, Aggregate] = field(default_factory=dict)
    took_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "prefix": self.prefix,
            "count": self.count,
            "totalBytes": self.total_bytes,
            "tookMs": self.took_ms,
            "byType": {kind: agg.to_dict() for kind, agg in self.by_type.items()},
            "byFolder": {name: agg.to_dict() for name, agg in self.by_folder.items()},
        }
        if self.newest is not None:
            data["newest"] = format_timestamp(self.newest)
        if self.oldest is not None:
            data["oldest"] = format_timestamp(self.oldest)
        return data


def top_folders(folders: dict[str, Aggregate], limit: int = MAX_FOLDERS) -> dict[str, Aggregate]:
    """Largest folders by bytes (ties by name), in that order."""
    ordered = sorted(folders.items(), key=lambda item: (-item[1].bytes, item[0]))
    return dict(ordered[:limit])


class StatsAggregator:
    """Aggregates counts, sizes, kinds and folders over a full enumeration."""

    def __init__(self, client: ObjectStoreClient, max_folders: int = MAX_FOLDERS) -> None:
        self.client = client
        self.max_folders = max_folders

    async def stats(self, prefix: str = "") -> StatsResult:
        """Walk every object under ``prefix`` and aggregate it.

        Zero-byte keys ending in ``/`` are folder markers and are not counted.
        An object is attributed to the first path segment below ``prefix``
        only when it sits at least one level deeper.

        Raises:
            UpstreamError: If any listing page fails
        """
        result = StatsResult(prefix=prefix)
        folders: dict[str, Aggregate] = {}

        with Timer() as timer:
            async for entry in iter_entries(self.client, prefix):
                if entry.key.endswith("/") and entry.size == 0:
                    continue

                result.count += 1
                result.total_bytes += entry.size

                modified = entry.last_modified
                if modified is not None:
                    if result.newest is None or modified > result.newest:
                        result.newest = modified
                    if result.oldest is None or modified < result.oldest:
                        result.oldest = modified

                kind = detect_kind(entry.key)
                result.by_type.setdefault(kind, Aggregate()).add(entry.size)

                rest = entry.key
                if prefix and rest.startswith(prefix):
                    rest = rest[len(prefix):]
                idx = rest.find("/")
                if idx >= 0:
                    folders.setdefault(rest[:idx + 1], Aggregate()).add(entry.size)

            result.by_folder = top_folders(folders, self.max_folders)

        result.took_ms = timer.elapsed_ms
        logger.info(
            "Stats aggregated",
            context={
                "prefix": prefix,
                "count": result.count,
                "total_bytes": result.total_bytes,
                "folders": len(folders),
            },
            duration_ms=timer.duration_ms,
        )
        emit_timer("stats.duration", timer.duration_ms)
        return result
