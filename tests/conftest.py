"""Shared pytest fixtures for component and API tests.

PostgreSQL is replaced by a file-backed SQLite database (aiosqlite) and Redis
by fakeredis, so the suite runs without external services. Each test gets a
fresh database file and a fresh fake Redis server.
"""

import datetime
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from shortlink.cache import LinkCache
from shortlink.config import Settings
from shortlink.creation import LinkCreationService
from shortlink.database import Database
from shortlink.dependencies import _service_manager
from shortlink.main import app
from shortlink.redis import RedisClients
from shortlink.resolver import RedirectResolver
from shortlink.sequence import RedisSequenceSource
from shortlink.store import LinkStore

START = datetime.datetime(2026, 1, 1, 12, 0, 0, tzinfo=datetime.UTC)


class MutableClock:
    """Clock whose current time tests move forward explicitly."""

    def __init__(self, now: datetime.datetime = START):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        BASE_URL="http://sho.rt",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortlink.db'}",
        REDIS_URL="redis://fake:6379/0",
        STORE_TIMEOUT_SECONDS=10.0,
        CACHE_TIMEOUT_SECONDS=1.0,
        SEQUENCE_TIMEOUT_SECONDS=1.0,
        SWEEPER_ENABLED=False,
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    db = Database.from_engines(engine)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[FakeAsyncRedis, None]:
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.flushdb()
    await client.aclose()


@pytest.fixture
def store(database: Database, settings: Settings) -> LinkStore:
    return LinkStore(database.primary, database.replica, timeout=settings.STORE_TIMEOUT_SECONDS)


@pytest.fixture
def cache(redis_client: FakeAsyncRedis, clock: MutableClock) -> LinkCache:
    return LinkCache(redis_client, key_prefix="link", timeout=1.0, clock=clock)


@pytest.fixture
def sequence(redis_client: FakeAsyncRedis, settings: Settings) -> RedisSequenceSource:
    return RedisSequenceSource(redis_client, settings.SEQUENCE_KEY)


@pytest.fixture
def creation_service(
    store: LinkStore,
    sequence: RedisSequenceSource,
    cache: LinkCache,
    settings: Settings,
    clock: MutableClock,
) -> LinkCreationService:
    return LinkCreationService(store, sequence, cache, settings, clock=clock)


@pytest.fixture
def resolver(cache: LinkCache, store: LinkStore, clock: MutableClock) -> RedirectResolver:
    return RedirectResolver(cache, store, clock=clock)


@pytest_asyncio.fixture
async def client(
    settings: Settings,
    database: Database,
    redis_client: FakeAsyncRedis,
) -> AsyncGenerator[AsyncClient, None]:
    clients = RedisClients(cache_writer=redis_client, cache_reader=redis_client, sequence=redis_client)
    await _service_manager.initialize(settings, database=database, redis_clients=clients)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://sho.rt") as ac:
        yield ac

    await _service_manager.resolver.drain()
    _service_manager._initialized = False
