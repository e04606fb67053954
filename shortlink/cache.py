"""Redis cache layer for redirect resolution.

The cache is a hint, the store is the truth. An entry carries the link's
logical expiry next to its destination, and the storage-level TTL only
bounds how stale a copy can get. A hit is therefore never proof that the
link is still valid: the resolver re-checks ``expires_at`` on every hit.

TTL Policy
==========
::
    expires_at set     ttl = max(expires_at - now, 0)
    expires_at None    ttl = CACHE_DEFAULT_TTL_SECONDS (24h staleness bound)

Failure Policy
==============
::
    ┌─────────────┐
    │ Redis call  │
    └──────┬──────┘
    ERROR / TIMEOUT / BAD PAYLOAD?
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌──────────────┐
│ Result  │  │ log warning, │
│         │  │ miss / False │
└─────────┘  └──────────────┘

Cache failures never reach the caller; the store is always the fallback.
"""

import asyncio
import datetime
import logging

import redis.asyncio as redis
from prometheus_client import Counter
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from shortlink.clock import Clock, as_utc, utcnow

__all__ = ["CachedLink", "LinkCache"]

logger = logging.getLogger("shortlink.cache")

CACHE_ERRORS_TOTAL = Counter(
    "shortlink_cache_errors_total",
    "Cache operations absorbed as misses or no-ops",
    ["operation"],
)


class CachedLink(BaseModel):
    """Redis cache payload for a short link."""

    long_url: str
    expires_at: datetime.datetime | None = None

    def is_expired(self, now: datetime.datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and now >= expires_at


class LinkCache:
    """Per-code cache entries with storage-level expiry.

    Args:
        writer: Client bound to the Redis primary (SET, DEL).
        reader: Client bound to a Redis replica (GET); defaults to ``writer``.
        key_prefix: Namespace of link keys, distinct from the sequence key.
        default_ttl: Staleness bound for links that never expire.
        timeout: Upper bound in seconds for each call.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        writer: redis.Redis,
        reader: redis.Redis | None = None,
        key_prefix: str = "link",
        default_ttl: datetime.timedelta = datetime.timedelta(hours=24),
        timeout: float = 0.2,
        clock: Clock = utcnow,
    ):
        self._writer = writer
        self._reader = reader or writer
        self._key_prefix = key_prefix
        self._default_ttl = default_ttl
        self._timeout = timeout
        self._clock = clock

    def key_for(self, code: str) -> str:
        return f"{self._key_prefix}:{code}"

    def ttl_for(self, logical_expiry: datetime.datetime | None) -> datetime.timedelta:
        if logical_expiry is None:
            return self._default_ttl
        remaining = as_utc(logical_expiry) - self._clock()
        return max(remaining, datetime.timedelta(0))

    async def get(self, code: str) -> CachedLink | None:
        try:
            raw = await asyncio.wait_for(self._reader.get(self.key_for(code)), timeout=self._timeout)
        except (TimeoutError, RedisError, OSError) as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get").inc()
            logger.warning(f"Cache get failed for {code}, treating as miss: {exc!r}")
            return None

        if raw is None:
            return None
        try:
            return CachedLink.model_validate_json(raw)
        except ValidationError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="decode").inc()
            logger.warning(f"Cache payload for {code} is unreadable, treating as miss: {exc}")
            return None

    async def put(
        self,
        code: str,
        long_url: str,
        logical_expiry: datetime.datetime | None,
        ttl: datetime.timedelta,
    ) -> bool:
        """Store an entry; a non-positive ``ttl`` removes any existing entry instead."""
        ttl_ms = int(ttl.total_seconds() * 1000)
        if ttl_ms <= 0:
            return await self.delete(code)

        payload = CachedLink(long_url=long_url, expires_at=as_utc(logical_expiry))
        try:
            await asyncio.wait_for(
                self._writer.set(self.key_for(code), payload.model_dump_json(), px=ttl_ms),
                timeout=self._timeout,
            )
        except (TimeoutError, RedisError, OSError) as exc:
            CACHE_ERRORS_TOTAL.labels(operation="put").inc()
            logger.warning(f"Cache put failed for {code}: {exc!r}")
            return False
        return True

    async def delete(self, code: str) -> bool:
        try:
            await asyncio.wait_for(self._writer.delete(self.key_for(code)), timeout=self._timeout)
        except (TimeoutError, RedisError, OSError) as exc:
            CACHE_ERRORS_TOTAL.labels(operation="delete").inc()
            logger.warning(f"Cache delete failed for {code}: {exc!r}")
            return False
        return True

    async def ping(self) -> bool:
        try:
            return bool(await asyncio.wait_for(self._writer.ping(), timeout=self._timeout))
        except (TimeoutError, RedisError, OSError):
            return False
