"""Bulk rename and delete over every object under a prefix.

Mutations are sequential and not atomic. Each rename is a server-side copy
followed by a delete of the source. The first failing call aborts the
operation and propagates; objects handled before it stay changed.
"""

from dataclasses import dataclass
from typing import Any

from bucketview.exceptions import UpstreamError, ValidationError
from bucketview.listing.enumerator import list_all_entries
from bucketview.observability import Timer, emit_counter, emit_timer, get_logger
from bucketview.protocols.object_store import ObjectStoreClient, object_path
from bucketview.utils.validation import normalize_folder, require_key

logger = get_logger(__name__)

COPY_OK = (200, 201)
DELETE_OK = (200, 204)


@dataclass(frozen=True)
class BulkResult:
    """Outcome of a completed bulk operation."""

    affected: int
    elapsed_ms: int

    def to_dict(self, count_field: str) -> dict[str, Any]:
        return {count_field: self.affected, "tookMs": self.elapsed_ms}


async def copy_object(client: ObjectStoreClient, src_key: str, dst_key: str) -> None:
    """Server-side copy of ``src_key`` onto ``dst_key``.

    Raises:
        UpstreamError: If the backend rejects the copy or cannot be reached
    """
    response = await client.send(
        "PUT",
        dst_key,
        headers={"x-amz-copy-source": object_path(client.bucket, src_key)},
    )
    if response.status_code not in COPY_OK:
        raise UpstreamError(
            f"copy {src_key} -> {dst_key}: copy failed: {response.status_code}",
            status_code=response.status_code,
        )


async def delete_object(client: ObjectStoreClient, key: str) -> None:
    """Delete one object.

    Raises:
        UpstreamError: If the backend rejects the delete or cannot be reached
    """
    response = await client.send("DELETE", key)
    if response.status_code not in DELETE_OK:
        raise UpstreamError(
            f"delete {key}: delete failed: {response.status_code}",
            status_code=response.status_code,
        )


def _require_distinct(src: str, dst: str) -> None:
    # Copying onto itself and then deleting the source would lose the object
    if src == dst:
        raise ValidationError(f"src and dst are the same: {src}")


class BulkMutator:
    """Prefix-wide rename and delete."""

    def __init__(self, client: ObjectStoreClient) -> None:
        self.client = client

    async def rename(self, src: str, dst: str, is_prefix: bool = False) -> BulkResult:
        """Move one object, or every object under a prefix.

        With ``is_prefix`` both sides are treated as folders (a trailing
        ``/`` is added) and each object below ``src`` is copied to the same
        relative path below ``dst`` and then deleted. Folder marker objects
        are left in place. Otherwise ``src`` and ``dst`` are exact keys.

        Raises:
            ValidationError: If an exact key is empty or src and dst are equal
            UpstreamError: On the first failing backend call
        """
        with Timer() as timer:
            if is_prefix:
                src = normalize_folder(src)
                dst = normalize_folder(dst)
                _require_distinct(src, dst)
                entries = await list_all_entries(self.client, src)
                logger.info(
                    "Renaming prefix",
                    context={"src": src, "dst": dst, "objects": len(entries)},
                )
                moved = 0
                for entry in entries:
                    if entry.is_directory_marker():
                        continue
                    await self._move(entry.key, dst + entry.key[len(src):])
                    moved += 1
            else:
                src = require_key(src, "src")
                dst = require_key(dst, "dst")
                _require_distinct(src, dst)
                await self._move(src, dst)
                moved = 1

        logger.info(
            "Rename completed",
            context={"src": src, "dst": dst, "moved": moved},
            duration_ms=timer.duration_ms,
        )
        emit_timer("bulk.rename.duration", timer.duration_ms)
        return BulkResult(affected=moved, elapsed_ms=timer.elapsed_ms)

    async def delete_prefix(self, prefix: str) -> BulkResult:
        """Delete every object under a folder prefix, markers included.

        Raises:
            UpstreamError: On the first failing backend call
        """
        with Timer() as timer:
            prefix = normalize_folder(prefix)
            keys = [entry.key for entry in await list_all_entries(self.client, prefix)]
            logger.info("Deleting prefix", context={"prefix": prefix, "objects": len(keys)})

            deleted = 0
            for key in keys:
                try:
                    await delete_object(self.client, key)
                except UpstreamError as e:
                    logger.error(
                        "Delete prefix aborted",
                        context={"prefix": prefix, "key": key, "deleted": deleted},
                        error=e,
                    )
                    raise
                deleted += 1
                emit_counter("bulk.objects_deleted")

        logger.info(
            "Delete prefix completed",
            context={"prefix": prefix, "deleted": deleted},
            duration_ms=timer.duration_ms,
        )
        emit_timer("bulk.delete_prefix.duration", timer.duration_ms)
        return BulkResult(affected=deleted, elapsed_ms=timer.elapsed_ms)

    async def _move(self, src_key: str, dst_key: str) -> None:
        try:
            await copy_object(self.client, src_key, dst_key)
            await delete_object(self.client, src_key)
        except UpstreamError as e:
            logger.error(
                "Rename aborted",
                context={"src_key": src_key, "dst_key": dst_key},
                error=e,
            )
            raise
        emit_counter("bulk.objects_moved")
