"""
Page cache for fetched wiki HTML using diskcache.

Keeps fetched pages across script invocations so repeated exports do not
hammer the wikis. Entries are keyed by URL, expire after a configurable TTL,
and are tagged so pages can be cleared without touching other entries.
"""

from pathlib import Path

from diskcache import Cache as DiskCache

PAGE_TAG = "page"


class CacheClient:
    def __init__(self, cache_dir: Path):
        self._cache_dir = cache_dir
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self._cache = DiskCache(str(self._cache_dir))

    def get_page(self, url: str) -> str | None:
        return self._cache.get(f"{PAGE_TAG}:{url}")

    def set_page(self, url: str, html: str, ttl: int | None = None) -> None:
        self._cache.set(f"{PAGE_TAG}:{url}", html, expire=ttl, tag=PAGE_TAG)

    def clear_cache(self, tags: list[str] | None = None) -> None:
        if tags:
            for tag in tags:
                self._cache.evict(tag)
        else:
            self._cache.clear()

    def close(self) -> None:
        self._cache.close()
