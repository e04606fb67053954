"""Short-link creation.

Link Creation Flow
==================
::
    ┌─────────────┐
    │ POST        │
    │ /shorten    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate URL│  InvalidURLError / UnsupportedSchemeError
    │ & code      │  InvalidCodeError   (nothing written yet)
    └──────┬──────┘
    CUSTOM CODE?
    ┌─────┴─────────────┐
    │ NO                 │ YES
    ▼                    ▼
┌──────────────┐   ┌──────────────┐
│ sequence.    │   │ use caller's │
│ next_value() │   │ code         │
│ base62_encode│   └──────┬───────┘
└──────┬───────┘          │
       ▼                  ▼
    ┌─────────────────────────┐
    │ store.insert            │  unique constraint decides the race
    └──────┬──────────────────┘
           ▼
    ┌─────────────┐
    │ Pre-warm    │  best effort
    │ cache       │
    └─────────────┘

Key Behaviours
===============
- A sequence failure aborts before any write.
- A sequence value whose code equals a reserved route segment (``docs``,
  ``health``, ...) is skipped and the next value drawn.
- A conflict on a custom code is the caller's "code already in use".
- A conflict on a generated code means the counter repeated a value or a
  custom code squatted on a future generated one. It is logged at ERROR and
  retried once with a fresh value; a second conflict raises
  ``CodeAllocationError``.
"""

import datetime
import logging
import time

from prometheus_client import Counter, Histogram

from shortlink.cache import LinkCache
from shortlink.clock import Clock, as_utc, utcnow
from shortlink.codec import base62_encode
from shortlink.config import Settings
from shortlink.enums import RequestStatus
from shortlink.exceptions import (
    CodeAllocationError,
    CodeConflictError,
    InvalidRequestError,
    UnavailableError,
)
from shortlink.models import ShortLink
from shortlink.sequence import SequenceSource
from shortlink.store import LinkStore
from shortlink.validation import RESERVED_CODES, validate_custom_code, validate_long_url

__all__ = ["LinkCreationService"]

logger = logging.getLogger("shortlink.creation")

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlink_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CREATION_DURATION = Histogram(
    "shortlink_creation_duration_seconds",
    "Link creation duration in seconds",
)
GENERATED_CODE_CONFLICTS_TOTAL = Counter(
    "shortlink_generated_code_conflicts_total",
    "Generated codes rejected by the store's uniqueness constraint",
)
RESERVED_CODES_SKIPPED_TOTAL = Counter(
    "shortlink_reserved_codes_skipped_total",
    "Sequence values skipped because they encode to a reserved route segment",
)


class LinkCreationService:
    """Validates input, obtains a code and writes the link.

    Args:
        store: Durable link store.
        sequence: Atomic counter used for generated codes.
        cache: Cache pre-warmed after a successful creation.
        settings: Limits and this service's public URL.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        store: LinkStore,
        sequence: SequenceSource,
        cache: LinkCache,
        settings: Settings,
        clock: Clock = utcnow,
    ):
        self._store = store
        self._sequence = sequence
        self._cache = cache
        self._settings = settings
        self._clock = clock

    async def create(
        self,
        long_url: str,
        custom_code: str | None = None,
        expires_at: datetime.datetime | None = None,
        owner: str | None = None,
    ) -> ShortLink:
        """Create a short link.

        Raises:
            InvalidURLError, UnsupportedSchemeError, InvalidCodeError: Bad input.
            CodeConflictError: ``custom_code`` is already taken.
            CodeAllocationError: Generated codes collided twice.
            SequenceUnavailableError, StoreUnavailableError: Backend failure.
        """
        start_time = time.perf_counter()
        try:
            link = await self._create(long_url, custom_code, expires_at, owner)
        except InvalidRequestError:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            raise
        except CodeConflictError:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.CONFLICT).inc()
            raise
        except UnavailableError:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.UNAVAILABLE).inc()
            raise
        except Exception:
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise
        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

        LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        await self._prewarm(link)
        logger.info(f"Created link {link.code} (expires_at={link.expires_at})")
        return link

    async def _create(
        self,
        long_url: str,
        custom_code: str | None,
        expires_at: datetime.datetime | None,
        owner: str | None,
    ) -> ShortLink:
        validate_long_url(long_url, self._settings.public_netloc, self._settings.MAX_URL_LENGTH)
        if custom_code is not None:
            validate_custom_code(custom_code, self._settings.MAX_CODE_LENGTH)

        expires_at = as_utc(expires_at)

        if custom_code is not None:
            return await self._store.insert(self._new_link(custom_code, long_url, expires_at, owner))
        return await self._insert_generated(long_url, expires_at, owner)

    async def _insert_generated(
        self,
        long_url: str,
        expires_at: datetime.datetime | None,
        owner: str | None,
    ) -> ShortLink:
        code = await self._next_generated_code()
        try:
            return await self._store.insert(self._new_link(code, long_url, expires_at, owner))
        except CodeConflictError:
            GENERATED_CODE_CONFLICTS_TOTAL.inc()
            logger.error(f"Generated code {code} already exists; sequence and store disagree, retrying once")

        retry_code = await self._next_generated_code()
        try:
            return await self._store.insert(self._new_link(retry_code, long_url, expires_at, owner))
        except CodeConflictError as exc:
            GENERATED_CODE_CONFLICTS_TOTAL.inc()
            logger.error(f"Generated code {retry_code} also exists after retry; refusing to continue")
            raise CodeAllocationError(
                f"Generated codes {code} and {retry_code} both collided with existing links"
            ) from exc

    async def _next_generated_code(self) -> str:
        """Draw sequence values until one encodes to a code no fixed route serves."""
        code = base62_encode(await self._sequence.next_value())
        while code in RESERVED_CODES:
            RESERVED_CODES_SKIPPED_TOTAL.inc()
            logger.warning(f"Skipping generated code {code}: it is a reserved route segment")
            code = base62_encode(await self._sequence.next_value())
        return code

    def _new_link(
        self,
        code: str,
        long_url: str,
        expires_at: datetime.datetime | None,
        owner: str | None,
    ) -> ShortLink:
        return ShortLink(
            code=code,
            long_url=long_url,
            owner=owner,
            expires_at=expires_at,
            created_at=self._clock(),
        )

    async def _prewarm(self, link: ShortLink) -> None:
        try:
            await self._cache.put(link.code, link.long_url, link.expires_at, self._cache.ttl_for(link.expires_at))
        except Exception as exc:
            logger.warning(f"Cache pre-warm failed for {link.code}: {exc!r}")
