"""Redis client construction for the cache and the sequence counter.

Flow Diagram — Client Roles
===========================
::
    ┌──────────────┐   GET link:*        ┌──────────────┐
    │ cache_reader │ ──────────────────▶ │ Redis replica│
    └──────────────┘                     └──────────────┘
    ┌──────────────┐   SET/DEL link:*    ┌──────────────┐
    │ cache_writer │ ──────────────────▶ │ Redis primary│
    └──────────────┘                     └──────────────┘
    ┌──────────────┐   INCR seq:*        ┌──────────────┐
    │ sequence     │ ──────────────────▶ │ Redis primary│
    └──────────────┘                     │ (AOF)        │
                                         └──────────────┘

Key Behaviours
===============
- Socket timeouts bound every command so a stalled Redis degrades to a
  cache miss instead of hanging the redirect path.
- UTF-8 encoding with decode_responses for string operations.
- Replica and sequence URLs fall back to the primary URL when unset.

Functions:
    create_redis():  Build a client for a URL.
    RedisClients:  The three role-bound clients and their shutdown.
"""

from dataclasses import dataclass

import redis.asyncio as redis

from shortlink.config import Settings

__all__ = ["RedisClients", "create_redis"]


def create_redis(url: str, timeout: float | None = None) -> redis.Redis:
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


@dataclass
class RedisClients:
    cache_writer: redis.Redis
    cache_reader: redis.Redis
    sequence: redis.Redis

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisClients":
        cache_writer = create_redis(settings.REDIS_URL, settings.CACHE_TIMEOUT_SECONDS)
        # Replica lag only delays a cache hit; the store stays authoritative.
        if settings.REDIS_REPLICA_URL:
            cache_reader = create_redis(settings.REDIS_REPLICA_URL, settings.CACHE_TIMEOUT_SECONDS)
        else:
            cache_reader = cache_writer
        sequence = create_redis(
            settings.SEQUENCE_REDIS_URL or settings.REDIS_URL,
            settings.SEQUENCE_TIMEOUT_SECONDS,
        )
        return cls(cache_writer=cache_writer, cache_reader=cache_reader, sequence=sequence)

    async def close(self) -> None:
        closed: set[int] = set()
        for client in (self.cache_writer, self.cache_reader, self.sequence):
            if id(client) in closed:
                continue
            closed.add(id(client))
            await client.aclose()
