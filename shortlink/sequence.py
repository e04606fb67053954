"""Global sequence sources for generated short codes.

The sequence is the single serialization point of the service: every
generated code is ``base62_encode(next_value())``, so two callers must never
see the same value, and a restart must never rewind the counter.

Backends
========
::
    RedisSequenceSource      INCR <SEQUENCE_KEY>       (Redis primary with AOF)
    PostgresSequenceSource   SELECT nextval('short_link_code_seq')

Both start at 1, so an encoded value is never empty.

Key Behaviours
===============
- One round trip per value; there is no in-process block of pre-allocated
  ids, so no instance holds state that a crash could lose or replay.
- Any error or timeout raises ``SequenceUnavailableError``; there is no
  fallback to a non-atomic source.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.exceptions import SequenceUnavailableError
from shortlink.models import CODE_SEQUENCE

__all__ = ["SequenceSource", "RedisSequenceSource", "PostgresSequenceSource"]

logger = logging.getLogger("shortlink.sequence")


class SequenceSource(ABC):
    """Atomic, durable, monotonically increasing counter."""

    def __init__(self, timeout: float = 1.0):
        self._timeout = timeout

    async def next_value(self) -> int:
        """Return the next value, never repeating one previously issued.

        Raises:
            SequenceUnavailableError: The increment failed or timed out.
        """
        try:
            value = await asyncio.wait_for(self._increment(), timeout=self._timeout)
        except TimeoutError as exc:
            logger.error(f"Sequence increment timed out after {self._timeout}s")
            raise SequenceUnavailableError("Sequence source timed out") from exc
        except (RedisError, SQLAlchemyError, OSError) as exc:
            logger.error(f"Sequence increment failed: {exc}")
            raise SequenceUnavailableError("Sequence source unavailable") from exc

        if value < 1:
            raise SequenceUnavailableError(f"Sequence source returned invalid value {value}")
        return value

    @abstractmethod
    async def _increment(self) -> int:
        raise NotImplementedError


class RedisSequenceSource(SequenceSource):
    """Counter kept under a single well-known Redis key."""

    def __init__(self, client: redis.Redis, key: str, timeout: float = 1.0):
        super().__init__(timeout)
        self._client = client
        self._key = key

    async def _increment(self) -> int:
        return int(await self._client.incr(self._key))


class PostgresSequenceSource(SequenceSource):
    """Counter backed by the ``short_link_code_seq`` database sequence."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], timeout: float = 1.0):
        super().__init__(timeout)
        self._session_factory = session_factory

    async def _increment(self) -> int:
        async with self._session_factory() as session:
            value = (await session.execute(select(CODE_SEQUENCE.next_value()))).scalar_one()
            await session.commit()
        return int(value)
