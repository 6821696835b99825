"""
Async page transport for wiki HTML.

Assemblers only need a ``fetch_text(url) -> html`` coroutine; ``PageFetcher``
provides one on top of a shared ``httpx.AsyncClient`` with an optional disk
cache in front of it. Retries are left to callers.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from wikidex.cache import CacheClient
from wikidex.config import get_settings
from wikidex.exceptions import TransportError
from wikidex.models import RawPage

log = logging.getLogger(__name__)

FetchText = Callable[[str], Awaitable[str]]

_ACCEPT_HTML = "text/html,application/xhtml+xml"


class PageFetcher:
    def __init__(
        self,
        cache: CacheClient | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        ttl: int | None = None,
    ):
        settings = get_settings()
        self._cache = cache
        self._ttl = settings.page_cache_ttl if ttl is None else ttl
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=settings.api_timeout,
            headers={"User-Agent": settings.user_agent, "Accept": _ACCEPT_HTML},
            follow_redirects=True,
        )

    async def fetch_page(self, url: str) -> RawPage:
        if self._cache is not None:
            cached = self._cache.get_page(url)
            if cached is not None:
                log.info("%s: using cached page", url)
                return RawPage(source_url=url, html=cached)

        log.info("%s: fetching", url)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(
                f"Failed to fetch {url}: HTTP {status}", url=url, status_code=status
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error fetching {url}: {e}", url=url) from e

        html = response.text
        if self._cache is not None:
            self._cache.set_page(url, html, ttl=self._ttl)
        return RawPage(source_url=url, html=html)

    async def fetch_text(self, url: str) -> str:
        page = await self.fetch_page(url)
        return page.html

    async def __call__(self, url: str) -> str:
        return await self.fetch_text(url)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
