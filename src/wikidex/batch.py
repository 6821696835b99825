"""
Bounded-concurrency batch fetching with per-item failure isolation.

Each index entry is fetched and parsed by a caller-supplied coroutine. At most
``concurrency`` of them run at once; a failing entry is logged and dropped (or
replaced by a fallback record) without disturbing its siblings, and the
collected records are sorted so the output never depends on completion order.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from wikidex.config import get_settings
from wikidex.exceptions import ConfigurationError, WikiDexError

log = logging.getLogger(__name__)

K = TypeVar("K")
R = TypeVar("R")

ProgressCallback = Callable[[int, int], None]


class ConcurrencyLimiter:
    """
    Counting gate admitting at most ``max_concurrent`` holders.

    Waiters queue in FIFO order. A releasing holder hands its slot straight to
    the next live waiter, so the active count only drops when nobody waits.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> None:
        if self.active < self.max_concurrent and not self.waiting:
            self.active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before cancellation.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self.active -= 1

    async def __aenter__(self) -> "ConcurrencyLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.release()


def resolve_concurrency(concurrency: int | None) -> int:
    """Apply the configured default and cap; reject values below 1."""
    settings = get_settings()
    value = settings.concurrency if concurrency is None else concurrency
    if value < 1:
        raise ConfigurationError(f"Concurrency must be at least 1, got {value}")
    if value > settings.max_concurrency:
        log.debug("Clamping concurrency %d to %d", value, settings.max_concurrency)
        value = settings.max_concurrency
    return value


async def fetch_all_details(
    index: Iterable[K],
    fetch_detail: Callable[[K], Awaitable[R]],
    *,
    concurrency: int | None = None,
    on_progress: ProgressCallback | None = None,
    sort_key: Callable[[R], Any] | None = None,
    fallback: Callable[[K, Exception], R | None] | None = None,
) -> list[R]:
    """
    Fetch every entry of ``index`` with at most ``concurrency`` in flight.

    ``on_progress(done, total)`` fires once per entry, success or failure,
    with ``done`` strictly increasing up to ``total``. Failed entries are
    omitted unless ``fallback(entry, error)`` returns a replacement.

    Raises:
        ConfigurationError: If concurrency is below 1; raised before any fetch.
    """
    limit = resolve_concurrency(concurrency)
    entries = list(index)
    total = len(entries)
    limiter = ConcurrencyLimiter(limit)
    done = 0

    def recover(entry: K, error: Exception) -> R | None:
        if fallback is None:
            return None
        try:
            return fallback(entry, error)
        except Exception:
            log.exception("Fallback failed for %s", entry)
            return None

    async def run_one(entry: K) -> R | None:
        nonlocal done
        try:
            async with limiter:
                return await fetch_detail(entry)
        except WikiDexError as e:
            log.warning("Skipping %s: %s", entry, e)
            return recover(entry, e)
        except Exception as e:
            log.exception("Unexpected error fetching %s", entry)
            return recover(entry, e)
        finally:
            done += 1
            if on_progress is not None:
                try:
                    on_progress(done, total)
                except Exception:
                    log.exception("Progress callback failed at %d/%d", done, total)

    log.info("Fetching %d entries (concurrency %d)", total, limit)
    results = await asyncio.gather(*(run_one(entry) for entry in entries))

    records = [r for r in results if r is not None]
    if sort_key is not None:
        records.sort(key=sort_key)
    if len(records) < total:
        log.info("Fetched %d of %d entries", len(records), total)
    return records
