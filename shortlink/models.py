"""SQLAlchemy ORM models for the short-link store.

Data Model Layout
=================
::
    short_links table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ code (VARCHAR(12) UNIQUE, INDEXED)
    ├─ long_url (VARCHAR(2048) NOT NULL)
    ├─ owner (VARCHAR(255) NULL)
    ├─ expires_at (TIMESTAMPTZ NULL, INDEXED)
    └─ created_at (TIMESTAMPTZ NOT NULL)

    claimed_codes table
    ├─ code (VARCHAR(12) PRIMARY KEY)
    └─ claimed_at (TIMESTAMPTZ NOT NULL)

    short_link_code_seq (SEQUENCE, START 1)

How to Use
===========
**Step 1 — Import**::
    from shortlink.models import ShortLink

**Step 2 — Query links**::
    result = await session.execute(select(ShortLink).where(ShortLink.code == "abc123"))
    link = result.scalar_one_or_none()

Key Behaviours
===============
- ``code`` is unique and indexed for fast lookups during redirects.
- ``expires_at`` is indexed so the sweeper's range delete does not scan.
- A ``claimed_codes`` row is written with every link and never deleted, so a
  purged link's code can never be handed out again.
- ``short_link_code_seq`` backs the PostgreSQL sequence source; backends
  without sequences (SQLite) skip it on ``create_all``.

Classes:
    ShortLink:  Authoritative short-link record.
    ClaimedCode:  Permanent reservation of every code ever issued.
"""

import datetime

from sqlalchemy import DateTime, Sequence, String
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.clock import as_utc
from shortlink.database import Base

__all__ = ["ShortLink", "ClaimedCode", "CODE_SEQUENCE"]

CODE_SEQUENCE = Sequence("short_link_code_seq", start=1, increment=1, metadata=Base.metadata)


class ShortLink(Base):
    __tablename__ = "short_links"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(12), unique=True, index=True, nullable=False)
    long_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    owner: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), index=True, nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def is_expired(self, now: datetime.datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and now >= expires_at

    def __repr__(self) -> str:
        return f"<ShortLink(id={self.id}, code='{self.code}', expires_at={self.expires_at})>"


class ClaimedCode(Base):
    __tablename__ = "claimed_codes"

    code: Mapped[str] = mapped_column(String(12), primary_key=True)
    claimed_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
