"""FastAPI route definitions for the short-link REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /shorten
        ├─ LinkCreate (request body), X-Owner-ID (optional header)
        └─ LinkCreated (201) or 400/409/422/503

    GET  /api/links?owner=&limit=&offset=
        └─ LinkList (200), read from the replica

    GET  /api/links/:code
        └─ LinkInfo (200) or 404, read from the replica

    GET  /:code
        └─ 302 Redirect, 404 unknown, 410 expired, 503 store down

Key Behaviours
===============
- Domain errors are raised as ``ShortLinkError`` subclasses and turned into
  ``{"detail": ...}`` responses by the handler registered in ``main``.
- The redirect route is registered last so it never shadows fixed paths.
"""

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import RedirectResponse

from shortlink.clock import utcnow
from shortlink.creation import LinkCreationService
from shortlink.dependencies import (
    RequestContext,
    ServiceManager,
    get_creation_service,
    get_request_context,
    get_resolver,
    get_service_manager,
    get_store,
)
from shortlink.enums import HealthStatus, ResolutionStatus
from shortlink.exceptions import LinkGoneError, LinkNotFoundError, ShortLinkError
from shortlink.resolver import RedirectResolver
from shortlink.schemas import HealthResponse, LinkCreate, LinkCreated, LinkInfo, LinkList
from shortlink.store import LinkStore

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    ctx: RequestContext = Depends(get_request_context),
    manager: ServiceManager = Depends(get_service_manager),
) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await manager.store.ping()
    except ShortLinkError as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    if not await manager.cache.ping():
        ctx.logger.error("Cache health check failed")
        cache_status = HealthStatus.UNHEALTHY

    # The cache degrades to misses, so only the database decides overall health.
    status = db_status
    ctx.logger.debug(f"Health check completed: {status.value}")
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/shorten", response_model=LinkCreated, status_code=201, tags=["links"])
async def shorten_url(
    payload: LinkCreate,
    owner: str | None = Header(None, alias="X-Owner-ID"),
    ctx: RequestContext = Depends(get_request_context),
    service: LinkCreationService = Depends(get_creation_service),
) -> LinkCreated:
    ctx.logger.info(
        f"Link creation requested for {payload.long_url}",
        extra={"operation": "create_link", "custom_code": payload.custom_code},
    )
    link = await service.create(
        payload.long_url,
        custom_code=payload.custom_code,
        expires_at=payload.expires_at,
        owner=owner,
    )
    ctx.logger.info(
        f"Link created: {link.code}",
        extra={"operation": "create_link", "code": link.code, "duration_ms": ctx.get_duration()},
    )
    return LinkCreated.from_link(link, ctx.settings)


@router.get("/api/links", response_model=LinkList, tags=["links"])
async def list_links(
    owner: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(get_request_context),
    store: LinkStore = Depends(get_store),
) -> LinkList:
    links = await store.list_links(owner=owner, limit=limit, offset=offset)
    total = await store.count_links(owner=owner)
    now = utcnow()
    return LinkList(total=total, items=[LinkInfo.from_link(link, ctx.settings, now) for link in links])


@router.get("/api/links/{code}", response_model=LinkInfo, tags=["links"])
async def get_link_info(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    store: LinkStore = Depends(get_store),
) -> LinkInfo:
    link = await store.get_link_info(code)
    return LinkInfo.from_link(link, ctx.settings, utcnow())


@router.get("/{code}", tags=["redirect"])
async def redirect_to_url(
    code: str,
    ctx: RequestContext = Depends(get_request_context),
    resolver: RedirectResolver = Depends(get_resolver),
) -> RedirectResponse:
    resolution = await resolver.resolve(code)

    if resolution.status is ResolutionStatus.NOT_FOUND:
        ctx.logger.info(f"Redirect failed - code not found: {code}")
        raise LinkNotFoundError(code)
    if resolution.status is ResolutionStatus.GONE:
        ctx.logger.info(f"Redirect failed - code expired: {code}")
        raise LinkGoneError(code)

    return RedirectResponse(url=resolution.long_url, status_code=302)
