"""Database engines and session factories for the short-link store.

This module provides SQLAlchemy async engine setup for PostgreSQL with two
paths: a primary (read/write) path reserved for inserts, deletes and the
redirect lookup, and a read-only replica path used by reporting reads.

Flow Diagram — Database Setup
=============================
::
    ┌─────────────┐
    │  Settings   │
    └──────┬──────┘
           ▼
    ┌─────────────┐     DATABASE_REPLICA_URL set?
    │ Database.   │─────────────┐
    │ from_settings│   NO       │ YES
    └──────┬──────┘            ▼
           │             ┌─────────────┐
           │             │ Replica     │
           │             │ engine      │
           │             └──────┬──────┘
           ▼                    ▼
    ┌─────────────┐      ┌─────────────┐
    │ primary     │      │ replica     │
    │ sessionmaker│      │ sessionmaker│
    └─────────────┘      └─────────────┘

How to Use
===========
**Step 1 — Build on startup**::
    database = Database.from_settings(get_settings())
    await database.create_all()

**Step 2 — Open sessions**::
    async with database.primary() as session:
        await session.execute(select(ShortLink))

**Step 3 — Cleanup on shutdown**::
    await database.dispose()

Key Behaviours
===============
- Each store operation opens its own short session.
- Connection pooling is configured for production workloads.
- Without a replica URL the replica path reuses the primary engine.

Classes:
    Base:  SQLAlchemy declarative base for all models.
    Database:  Holder for the primary and replica engines.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortlink.config import Settings

__all__ = ["Base", "Database", "build_engine"]


class Base(DeclarativeBase):
    pass


def build_engine(url: str, settings: Settings) -> AsyncEngine:
    options: dict = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return create_async_engine(url, echo=False, **options)


@dataclass
class Database:
    primary_engine: AsyncEngine
    replica_engine: AsyncEngine
    primary: async_sessionmaker[AsyncSession]
    replica: async_sessionmaker[AsyncSession]

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        primary_engine = build_engine(settings.DATABASE_URL, settings)
        if settings.DATABASE_REPLICA_URL:
            replica_engine = build_engine(settings.DATABASE_REPLICA_URL, settings)
        else:
            replica_engine = primary_engine
        return cls.from_engines(primary_engine, replica_engine)

    @classmethod
    def from_engines(cls, primary_engine: AsyncEngine, replica_engine: AsyncEngine | None = None) -> "Database":
        replica_engine = replica_engine or primary_engine
        return cls(
            primary_engine=primary_engine,
            replica_engine=replica_engine,
            primary=async_sessionmaker(primary_engine, class_=AsyncSession, expire_on_commit=False),
            replica=async_sessionmaker(replica_engine, class_=AsyncSession, expire_on_commit=False),
        )

    async def create_all(self) -> None:
        async with self.primary_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.primary_engine.dispose()
        if self.replica_engine is not self.primary_engine:
            await self.replica_engine.dispose()
