from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from linkpreview.core.fingerprint import fingerprint
from linkpreview.models.metadata.document import MetadataDocument
from linkpreview.repositories.base import (
    MetadataStore,
    NotFoundError,
    StoreError,
    WriteError,
)
from linkpreview.services.preview.formatter import error_fragment, format_preview
from linkpreview.workers.fetcher import FetchError, MetadataSource

logger = logging.getLogger(__name__)

Formatter = Callable[[str, MetadataDocument], str]


class PreviewResolver:
    """Turn a URL into a link-preview fragment, fetching each URL only once.

    The store is consulted first; on a miss (or an unreadable entry) the
    source is asked for fresh metadata, which is persisted on a best-effort
    basis before being formatted.  ``resolve`` never raises: failures are
    rendered as an inline error fragment.
    """

    def __init__(
        self,
        store: MetadataStore,
        source: MetadataSource,
        *,
        formatter: Formatter = format_preview,
        fetch_timeout: Optional[float] = None,
        coalesce: bool = True,
    ) -> None:
        self._store = store
        self._source = source
        self._format = formatter
        self._fetch_timeout = fetch_timeout
        self._coalesce = coalesce
        self._inflight: dict[str, asyncio.Task[MetadataDocument]] = {}

    async def resolve(self, url: str) -> str:
        """Return the preview fragment for *url*."""
        key = fingerprint(url)
        try:
            document = await self._load_cached(url, key)
            if document is None:
                logger.info("No persisted data for %s, scraping.", url)
                document = await self._fetch(url, key)
            return self._format(url, document)
        except FetchError as exc:
            logger.warning("Metadata retrieval failed for %s: %s", url, exc)
            return error_fragment("Did not receive metadata")
        except Exception:
            logger.exception("Unexpected error while building preview for %s", url)
            return error_fragment("Could not build link preview")

    async def lookup(self, url: str) -> MetadataDocument | None:
        """Return the cached metadata for *url*, or ``None`` if not stored."""
        return await self._load_cached(url, fingerprint(url))

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def _load_cached(self, url: str, key: str) -> MetadataDocument | None:
        """Read the stored document, treating any unreadable entry as a miss."""
        try:
            if not await self._store.exists(key):
                return None
            document = await self._store.read(key)
        except NotFoundError:
            # Removed between exists() and read().
            return None
        except StoreError as exc:
            logger.warning("Persisted metadata for %s is unreadable, refetching: %s", url, exc)
            return None
        logger.info("Using persisted data for link %s.", url)
        return document

    async def _persist(self, url: str, key: str, document: MetadataDocument) -> bool:
        """Best-effort write; a failure only costs a refetch next time."""
        try:
            await self._store.write(key, document)
        except WriteError as exc:
            logger.warning("Could not persist metadata for %s: %s", url, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Source
    # ------------------------------------------------------------------

    async def _fetch(self, url: str, key: str) -> MetadataDocument:
        if not self._coalesce:
            return await self._fetch_and_persist(url, key)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_persist(url, key))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        # shield: one caller giving up must not cancel the fetch for the rest.
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[MetadataDocument]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark a failure as retrieved even when every waiter was cancelled.
        if not task.cancelled():
            task.exception()

    async def _fetch_and_persist(self, url: str, key: str) -> MetadataDocument:
        try:
            document = await asyncio.wait_for(self._source.fetch(url), self._fetch_timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(f"Timed out after {self._fetch_timeout}s fetching {url}") from exc
        if document is None:
            raise FetchError(f"No metadata returned for {url}")
        await self._persist(url, key, document)
        return document
