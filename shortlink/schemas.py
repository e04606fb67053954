"""Pydantic schemas for request/response validation.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ long_url: str
    ├─ custom_code: str | None
    └─ expires_at: datetime | None

    LinkCreated (Output, 201)
    ├─ short_url: str
    ├─ code: str
    └─ expires_at: datetime | None

    LinkInfo (Output)
    ├─ code, short_url, long_url
    ├─ owner: str | None
    ├─ expires_at: datetime | None
    ├─ created_at: datetime
    └─ expired: bool

    HealthResponse (Output)
    ├─ status: str
    ├─ database: str
    └─ cache: str

Key Behaviours
===============
- Schemas only check types and shapes; URL and code rules live in
  ``shortlink.validation`` so they map to the 400/422 split of the API.
- All datetime fields are emitted timezone-aware (UTC).
"""

import datetime

from pydantic import BaseModel, Field

from shortlink.clock import as_utc
from shortlink.config import Settings
from shortlink.enums import HealthStatus
from shortlink.models import ShortLink

__all__ = [
    "LinkCreate",
    "LinkCreated",
    "LinkInfo",
    "LinkList",
    "HealthResponse",
]


class LinkCreate(BaseModel):
    long_url: str = Field(..., description="Destination URL, http or https, at most 2048 characters")
    custom_code: str | None = Field(None, description="Caller-chosen code, e.g. 'my-link'")
    expires_at: datetime.datetime | None = Field(None, description="Logical expiry; naive values are UTC")


class LinkCreated(BaseModel):
    short_url: str
    code: str
    expires_at: datetime.datetime | None

    @classmethod
    def from_link(cls, link: ShortLink, settings: Settings) -> "LinkCreated":
        return cls(
            short_url=settings.short_url_for(link.code),
            code=link.code,
            expires_at=as_utc(link.expires_at),
        )


class LinkInfo(BaseModel):
    code: str
    short_url: str
    long_url: str
    owner: str | None
    expires_at: datetime.datetime | None
    created_at: datetime.datetime
    expired: bool

    @classmethod
    def from_link(cls, link: ShortLink, settings: Settings, now: datetime.datetime) -> "LinkInfo":
        return cls(
            code=link.code,
            short_url=settings.short_url_for(link.code),
            long_url=link.long_url,
            owner=link.owner,
            expires_at=as_utc(link.expires_at),
            created_at=as_utc(link.created_at),
            expired=link.is_expired(now),
        )


class LinkList(BaseModel):
    total: int
    items: list[LinkInfo]


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
