"""Redirect resolution: cache first, store as truth, lazy expiry purge.

Resolution Flow
===============
::
    ┌─────────────┐
    │  GET /:code │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ cache.get   │
    └──────┬──────┘
    HIT?   │
    ┌──────┴───────────────────┐
    │ YES                       │ NO
    ▼                           ▼
┌──────────────┐          ┌──────────────┐
│ expired?     │          │ store.       │
│ YES → GONE + │          │ find_by_code │
│ background   │          └──────┬───────┘
│ cleanup      │          ┌──────┴──────────────┬──────────────┐
│ NO  → FOUND  │          │ missing             │ expired      │ valid
└──────────────┘          ▼                     ▼              ▼
                     NOT_FOUND          purge store+cache   cache.put
                                          → GONE            → FOUND

Key Behaviours
===============
- Every cache hit re-checks the logical expiry: the cache TTL is a staleness
  bound, not a validity proof.
- Cleanup after a GONE cache hit runs as a background task; the response
  never waits for it.
- Cleanup failures are logged and left for the next access or the sweeper.
- No locks: concurrent repairs overwrite each other with the same value and
  concurrent deletes are no-ops.
- Once a code is GONE or NOT_FOUND it never becomes FOUND again, because
  deletion is one-way and codes are never reissued.
"""

import asyncio
import logging
import time
from dataclasses import dataclass

from prometheus_client import Counter, Histogram

from shortlink.cache import LinkCache
from shortlink.clock import Clock, utcnow
from shortlink.enums import CacheStatus, ResolutionStatus
from shortlink.exceptions import LinkNotFoundError
from shortlink.store import LinkStore
from shortlink.validation import is_plausible_code

__all__ = ["Resolution", "RedirectResolver"]

logger = logging.getLogger("shortlink.resolver")

RESOLUTIONS_TOTAL = Counter(
    "shortlink_resolutions_total",
    "Total code resolutions",
    ["status", "cache_hit"],
)
RESOLUTION_DURATION = Histogram(
    "shortlink_resolution_duration_seconds",
    "Code resolution duration in seconds",
)
LAZY_PURGES_TOTAL = Counter(
    "shortlink_lazy_purges_total",
    "Expired links purged on access",
)
CLEANUP_FAILURES_TOTAL = Counter(
    "shortlink_cleanup_failures_total",
    "Best-effort cleanup steps that failed",
    ["target"],
)


@dataclass(frozen=True)
class Resolution:
    status: ResolutionStatus
    long_url: str | None = None

    @classmethod
    def found(cls, long_url: str) -> "Resolution":
        return cls(ResolutionStatus.FOUND, long_url)

    @classmethod
    def not_found(cls) -> "Resolution":
        return cls(ResolutionStatus.NOT_FOUND)

    @classmethod
    def gone(cls) -> "Resolution":
        return cls(ResolutionStatus.GONE)


class RedirectResolver:
    """Resolves codes to destinations and enforces logical expiry.

    Args:
        cache: Fast, possibly stale, lookup path.
        store: Authoritative store; its read errors propagate.
        clock: Source of the current UTC time.
        max_code_length: Longest code that can exist.
    """

    def __init__(self, cache: LinkCache, store: LinkStore, clock: Clock = utcnow, max_code_length: int = 12):
        self._cache = cache
        self._store = store
        self._clock = clock
        self._max_code_length = max_code_length
        self._cleanup_tasks: set[asyncio.Task] = set()

    async def resolve(self, code: str) -> Resolution:
        """Resolve ``code`` to FOUND, NOT_FOUND or GONE.

        Raises:
            StoreUnavailableError: The cache missed and the store failed.
        """
        start_time = time.perf_counter()
        try:
            resolution, cache_status = await self._resolve(code)
        finally:
            RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
        RESOLUTIONS_TOTAL.labels(status=resolution.status, cache_hit=cache_status).inc()
        return resolution

    async def _resolve(self, code: str) -> tuple[Resolution, CacheStatus]:
        if not is_plausible_code(code, self._max_code_length):
            return Resolution.not_found(), CacheStatus.MISS

        entry = await self._cache.get(code)
        if entry is not None:
            if entry.is_expired(self._clock()):
                logger.debug(f"Cache hit for expired code {code}, scheduling cleanup")
                self._schedule_cleanup(code)
                return Resolution.gone(), CacheStatus.HIT
            return Resolution.found(entry.long_url), CacheStatus.HIT

        try:
            link = await self._store.find_by_code(code)
        except LinkNotFoundError:
            return Resolution.not_found(), CacheStatus.MISS

        if link.is_expired(self._clock()):
            await self._purge(code)
            return Resolution.gone(), CacheStatus.MISS

        await self._cache.put(code, link.long_url, link.expires_at, self._cache.ttl_for(link.expires_at))
        return Resolution.found(link.long_url), CacheStatus.MISS

    async def _purge(self, code: str) -> None:
        try:
            if await self._store.delete_by_code(code):
                LAZY_PURGES_TOTAL.inc()
                logger.info(f"Purged expired link {code}")
        except Exception as exc:
            CLEANUP_FAILURES_TOTAL.labels(target="store").inc()
            logger.warning(f"Lazy purge of {code} from store failed: {exc!r}")

        if not await self._cache.delete(code):
            CLEANUP_FAILURES_TOTAL.labels(target="cache").inc()

    def _schedule_cleanup(self, code: str) -> None:
        task = asyncio.create_task(self._purge(code), name=f"purge:{code}")
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    @property
    def pending_cleanups(self) -> int:
        return len(self._cleanup_tasks)

    async def drain(self) -> None:
        """Wait for outstanding background cleanups (shutdown and tests)."""
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)
