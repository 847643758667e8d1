"""Async metadata source.

Responsible solely for turning a URL into a ``MetadataDocument``: download
the page, then hand the HTML to the extractor.

``HttpMetadataSource`` owns a long-lived ``httpx.AsyncClient``; create one
per process (the application lifespan does) and ``aclose()`` it on
shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from linkpreview.core.config import Settings
from linkpreview.models.metadata.document import MetadataDocument
from linkpreview.workers.extractor import extract_metadata

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.ConnectError)


class FetchError(Exception):
    """Raised when a metadata source cannot produce metadata for a URL."""


class MetadataSource(Protocol):
    """Anything that can fetch and extract page metadata."""

    async def fetch(self, url: str) -> MetadataDocument:
        """Return metadata for *url* or raise :class:`FetchError`."""
        ...


class HttpMetadataSource:
    """Fetch pages over HTTP and extract their metadata.

    Timeouts and connection failures are retried ``max_retries`` times with
    exponential backoff.  Everything else (invalid URL, non-2xx status,
    non-HTML body, exhausted retries) raises :class:`FetchError`.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        user_agent: str = "LinkPreviewBot/1.0",
        max_retries: int = 2,
        retry_wait: Optional[wait_base] = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            verify=verify_ssl,
            headers={"User-Agent": user_agent},
        )
        self.max_retries = max_retries
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=10)

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpMetadataSource:
        return cls(
            timeout=settings.http_timeout,
            verify_ssl=settings.http_verify_ssl,
            user_agent=settings.http_user_agent,
            max_retries=settings.http_max_retries,
        )

    async def aclose(self) -> None:
        """Close the underlying AsyncClient gracefully."""
        if not self._client.is_closed:
            await self._client.aclose()
            logger.info("HTTP client closed.")

    async def __aenter__(self) -> HttpMetadataSource:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch(self, url: str) -> MetadataDocument:
        """Download *url* and extract its metadata."""
        response = await self._download_with_retry(url)

        if not response.is_success:
            raise FetchError(f"'{url}' returned HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if content_type and "html" not in content_type.lower():
            raise FetchError(f"'{url}' is not an HTML page ({content_type})")

        return await asyncio.to_thread(extract_metadata, response.text, str(response.url))

    async def _download_with_retry(self, url: str) -> httpx.Response:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(_TRANSIENT_ERRORS),
                stop=stop_after_attempt(self.max_retries + 1),
                wait=self._retry_wait,
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=False,
            ):
                with attempt:
                    response = await self._download(url)
        except RetryError as exc:
            raise FetchError(
                f"Failed to fetch {url} after {self.max_retries + 1} attempts: "
                f"{exc.last_attempt.exception()}"
            ) from exc
        return response

    async def _download(self, url: str) -> httpx.Response:
        """Perform a single HTTP GET."""
        try:
            return await self._client.get(url)
        except httpx.InvalidURL as exc:
            raise FetchError(f"Invalid URL '{url}': {exc}") from exc
        except _TRANSIENT_ERRORS:
            raise  # propagate for retry logic
        except httpx.RequestError as exc:
            raise FetchError(f"Request error for '{url}': {exc}") from exc
