"""Full enumeration of every object under a prefix."""

from collections.abc import AsyncIterator

from bucketview.listing.fetcher import MAX_PAGE_SIZE, ContentEntry, fetch_page
from bucketview.observability import get_logger
from bucketview.protocols.object_store import ObjectStoreClient

logger = get_logger(__name__)


async def iter_entries(
    client: ObjectStoreClient,
    prefix: str = "",
    page_size: int = MAX_PAGE_SIZE,
) -> AsyncIterator[ContentEntry]:
    """Yield every object under ``prefix`` in backend order.

    Follows the backend continuation token, one page at a time, until the
    backend stops reporting one. A failing page raises out of the iterator.
    """
    token = ""
    pages = 0
    while True:
        page = await fetch_page(
            client,
            prefix=prefix,
            delimiter=None,
            page_size=page_size,
            continuation_token=token,
        )
        pages += 1
        for entry in page.contents:
            yield entry

        if not page.is_truncated or not page.next_continuation_token:
            break
        token = page.next_continuation_token

    logger.debug("Enumeration finished", context={"prefix": prefix, "pages": pages})


async def list_all_entries(
    client: ObjectStoreClient,
    prefix: str = "",
    page_size: int = MAX_PAGE_SIZE,
) -> list[ContentEntry]:
    """Collect the whole enumeration. Nothing is returned if any page fails."""
    return [entry async for entry in iter_entries(client, prefix, page_size)]


async def list_all_keys(
    client: ObjectStoreClient,
    prefix: str = "",
    page_size: int = MAX_PAGE_SIZE,
) -> list[str]:
    """Collect every key under ``prefix``."""
    return [entry.key async for entry in iter_entries(client, prefix, page_size)]
