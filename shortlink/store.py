"""Durable store of short links on top of SQLAlchemy async sessions.

The store is the source of truth. Code uniqueness is enforced by the
database's unique constraints at insert time, never by reading first, so two
concurrent inserts of the same code cannot both succeed.

Path Routing
============
::
    primary (read/write)            replica (read-only)
    ├─ insert                       ├─ get_link_info
    ├─ find_by_code (redirects)     ├─ list_links
    ├─ delete_by_code               └─ count_links
    └─ delete_expired_before

``find_by_code`` stays on the primary: a redirect issued right after a
creation must not miss because the replica lags.

Key Behaviours
===============
- Every operation opens and closes its own session.
- Every operation is bounded by ``timeout``; timeouts and driver errors raise
  ``StoreUnavailableError``.
- ``insert`` writes the link and its ``claimed_codes`` reservation in one
  transaction; a unique violation on either raises ``CodeConflictError``.
- Deletes are idempotent and never touch ``claimed_codes``.
"""

import asyncio
import datetime
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink.clock import as_utc
from shortlink.exceptions import CodeConflictError, LinkNotFoundError, StoreUnavailableError
from shortlink.models import ClaimedCode, ShortLink

__all__ = ["LinkStore"]

T = TypeVar("T")

logger = logging.getLogger("shortlink.store")


class LinkStore:
    """Short-link persistence with a write path and a reporting path.

    Args:
        primary: Session factory bound to the primary database.
        replica: Session factory bound to a read-only replica (defaults to primary).
        timeout: Upper bound in seconds for each operation.
    """

    def __init__(
        self,
        primary: async_sessionmaker[AsyncSession],
        replica: async_sessionmaker[AsyncSession] | None = None,
        timeout: float = 2.0,
    ):
        self._primary = primary
        self._replica = replica or primary
        self._timeout = timeout

    async def _bounded(self, operation: str, work: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(work(), timeout=self._timeout)
        except TimeoutError as exc:
            logger.error(f"Store {operation} timed out after {self._timeout}s")
            raise StoreUnavailableError(f"Store {operation} timed out") from exc
        except (SQLAlchemyError, OSError) as exc:
            logger.error(f"Store {operation} failed: {exc}")
            raise StoreUnavailableError(f"Store {operation} failed") from exc

    # ========================================================================
    # WRITE PATH
    # ========================================================================

    async def insert(self, link: ShortLink) -> ShortLink:
        """Insert a link, claiming its code permanently.

        Raises:
            CodeConflictError: The code exists now or existed before.
            StoreUnavailableError: The database failed or timed out.
        """

        async def work() -> ShortLink:
            async with self._primary() as session:
                session.add(ClaimedCode(code=link.code, claimed_at=link.created_at))
                session.add(link)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise CodeConflictError(link.code) from exc
                return link

        return await self._bounded("insert", work)

    async def find_by_code(self, code: str) -> ShortLink:
        """Fetch a link from the primary.

        Raises:
            LinkNotFoundError: No link exists for ``code``.
        """

        async def work() -> ShortLink | None:
            async with self._primary() as session:
                result = await session.execute(select(ShortLink).where(ShortLink.code == code))
                return result.scalar_one_or_none()

        link = await self._bounded("find_by_code", work)
        if link is None:
            raise LinkNotFoundError(code)
        return link

    async def delete_by_code(self, code: str) -> bool:
        """Delete a link; returns whether a row was removed. Absent codes are fine."""

        async def work() -> int:
            async with self._primary() as session:
                result = await session.execute(
                    delete(ShortLink)
                    .where(ShortLink.code == code)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                return result.rowcount or 0

        return await self._bounded("delete_by_code", work) > 0

    async def delete_expired_before(self, timestamp: datetime.datetime) -> int:
        """Bulk-delete every link whose ``expires_at`` is earlier than ``timestamp``."""
        cutoff = as_utc(timestamp)

        async def work() -> int:
            async with self._primary() as session:
                result = await session.execute(
                    delete(ShortLink)
                    .where(ShortLink.expires_at.is_not(None), ShortLink.expires_at < cutoff)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                return result.rowcount or 0

        return await self._bounded("delete_expired_before", work)

    async def ping(self) -> None:
        async def work() -> None:
            async with self._primary() as session:
                await session.execute(text("SELECT 1"))

        await self._bounded("ping", work)

    # ========================================================================
    # REPORTING PATH (replica)
    # ========================================================================

    async def get_link_info(self, code: str) -> ShortLink:
        async def work() -> ShortLink | None:
            async with self._replica() as session:
                result = await session.execute(select(ShortLink).where(ShortLink.code == code))
                return result.scalar_one_or_none()

        link = await self._bounded("get_link_info", work)
        if link is None:
            raise LinkNotFoundError(code)
        return link

    async def list_links(self, owner: str | None = None, limit: int = 50, offset: int = 0) -> list[ShortLink]:
        async def work() -> list[ShortLink]:
            query = select(ShortLink).order_by(ShortLink.id).limit(limit).offset(offset)
            if owner is not None:
                query = query.where(ShortLink.owner == owner)
            async with self._replica() as session:
                result = await session.execute(query)
                return list(result.scalars().all())

        return await self._bounded("list_links", work)

    async def count_links(self, owner: str | None = None) -> int:
        async def work() -> int:
            query = select(func.count()).select_from(ShortLink)
            if owner is not None:
                query = query.where(ShortLink.owner == owner)
            async with self._replica() as session:
                return int((await session.execute(query)).scalar_one())

        return await self._bounded("count_links", work)
