"""Dependency injection with a singleton service manager.

This module owns every shared resource (engines, Redis clients, the sequence
source) and the components built on them, so that requests only carry a
lightweight context. Instances hold no state beyond connection pools, which
keeps any number of them interchangeable behind a load balancer.
"""

import asyncio
import datetime
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from shortlink.cache import LinkCache
from shortlink.config import SequenceBackend, Settings, get_settings
from shortlink.creation import LinkCreationService
from shortlink.database import Database
from shortlink.redis import RedisClients
from shortlink.resolver import RedirectResolver
from shortlink.sequence import PostgresSequenceSource, RedisSequenceSource, SequenceSource
from shortlink.store import LinkStore
from shortlink.sweeper import ExpirationSweeper

__all__ = [
    "ServiceManager",
    "RequestContext",
    "get_service_manager",
    "get_request_context",
    "get_creation_service",
    "get_resolver",
    "get_store",
]


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    ``initialize`` accepts pre-built ``database`` and ``redis_clients`` so
    tests and workers can point the same wiring at other backends.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(
        self,
        settings: Settings | None = None,
        database: Database | None = None,
        redis_clients: RedisClients | None = None,
    ) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return

        self.settings = settings or get_settings()
        self.logger = self._setup_logger()
        self.database = database or Database.from_settings(self.settings)
        self.redis_clients = redis_clients or RedisClients.from_settings(self.settings)

        await self.database.create_all()

        self.store = LinkStore(
            self.database.primary,
            self.database.replica,
            timeout=self.settings.STORE_TIMEOUT_SECONDS,
        )
        self.cache = LinkCache(
            self.redis_clients.cache_writer,
            self.redis_clients.cache_reader,
            key_prefix=self.settings.CACHE_KEY_PREFIX,
            default_ttl=datetime.timedelta(seconds=self.settings.CACHE_DEFAULT_TTL_SECONDS),
            timeout=self.settings.CACHE_TIMEOUT_SECONDS,
        )
        self.sequence = self._setup_sequence()
        self.creation_service = LinkCreationService(self.store, self.sequence, self.cache, self.settings)
        self.resolver = RedirectResolver(self.cache, self.store, max_code_length=self.settings.MAX_CODE_LENGTH)
        self.sweeper = ExpirationSweeper(self.store, logging.getLogger("shortlink.sweeper"))
        self._sweeper_task: asyncio.Task | None = None

        if self.settings.SWEEPER_ENABLED:
            self._sweeper_task = asyncio.create_task(
                self.sweeper.run_forever(self.settings.SWEEPER_INTERVAL_SECONDS),
                name="expiration-sweeper",
            )

        self._initialized = True
        self.logger.info(f"{self.settings.APP_NAME} initialized (sequence backend: {self.settings.SEQUENCE_BACKEND})")

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    def _setup_sequence(self) -> SequenceSource:
        if self.settings.SEQUENCE_BACKEND is SequenceBackend.POSTGRES:
            return PostgresSequenceSource(self.database.primary, timeout=self.settings.SEQUENCE_TIMEOUT_SECONDS)
        return RedisSequenceSource(
            self.redis_clients.sequence,
            self.settings.SEQUENCE_KEY,
            timeout=self.settings.SEQUENCE_TIMEOUT_SECONDS,
        )

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        if not self._initialized:
            return
        if self._sweeper_task is not None:
            self._sweeper_task.cancel()
            await asyncio.gather(self._sweeper_task, return_exceptions=True)
        await self.resolver.drain()
        await self.redis_clients.close()
        await self.database.dispose()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking on top of the shared service manager.

    Attributes:
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        service_manager=manager,
        trace_id=request.headers.get("x-trace-id"),
        client_ip=request.client.host if request.client else None,
    )


def get_creation_service(manager: ServiceManager = Depends(get_service_manager)) -> LinkCreationService:
    return manager.creation_service


def get_resolver(manager: ServiceManager = Depends(get_service_manager)) -> RedirectResolver:
    return manager.resolver


def get_store(manager: ServiceManager = Depends(get_service_manager)) -> LinkStore:
    return manager.store
