"""Redirect resolver tests: cache-aside reads, repair and expiry."""

import datetime
from unittest.mock import AsyncMock, patch

import pytest

from shortlink.enums import ResolutionStatus
from shortlink.exceptions import StoreUnavailableError
from shortlink.resolver import RedirectResolver, Resolution


@pytest.mark.asyncio
async def test_resolves_existing_link(creation_service, resolver):
    link = await creation_service.create("https://example.com/a")

    assert await resolver.resolve(link.code) == Resolution.found("https://example.com/a")


@pytest.mark.asyncio
async def test_unknown_code_is_not_found(resolver):
    assert (await resolver.resolve("nope")).status is ResolutionStatus.NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["", "x" * 13, "favicon.ico", "a b"])
async def test_implausible_codes_skip_backends(resolver, store, code):
    with patch.object(store, "find_by_code", wraps=store.find_by_code) as spy:
        resolution = await resolver.resolve(code)

    assert resolution.status is ResolutionStatus.NOT_FOUND
    spy.assert_not_called()


@pytest.mark.asyncio
async def test_cache_miss_repairs_cache(creation_service, resolver, cache, store):
    link = await creation_service.create("https://example.com/a")
    await cache.delete(link.code)

    with patch.object(store, "find_by_code", wraps=store.find_by_code) as spy:
        assert (await resolver.resolve(link.code)).status is ResolutionStatus.FOUND
        assert (await resolver.resolve(link.code)).status is ResolutionStatus.FOUND

    assert spy.await_count == 1
    assert (await cache.get(link.code)).long_url == "https://example.com/a"


@pytest.mark.asyncio
async def test_cache_hit_for_expired_link_is_gone_and_cleans_up(creation_service, resolver, cache, store, clock):
    link = await creation_service.create("https://example.com/a", expires_at=clock.now + datetime.timedelta(minutes=5))
    assert (await resolver.resolve(link.code)).status is ResolutionStatus.FOUND

    clock.advance(minutes=5)
    resolution = await resolver.resolve(link.code)
    await resolver.drain()

    assert resolution.status is ResolutionStatus.GONE
    assert resolver.pending_cleanups == 0
    assert await cache.get(link.code) is None
    assert await store.count_links() == 0


@pytest.mark.asyncio
async def test_expired_link_in_store_is_purged(creation_service, resolver, cache, store, clock):
    link = await creation_service.create("https://example.com/a", expires_at=clock.now + datetime.timedelta(hours=1))
    await cache.delete(link.code)

    clock.advance(hours=2)

    assert (await resolver.resolve(link.code)).status is ResolutionStatus.GONE
    assert await store.count_links() == 0


@pytest.mark.asyncio
async def test_expired_link_never_resolves_again(creation_service, resolver, clock):
    link = await creation_service.create("https://example.com/a", expires_at=clock.now + datetime.timedelta(seconds=1))
    clock.advance(seconds=1)

    statuses = []
    for _ in range(3):
        statuses.append((await resolver.resolve(link.code)).status)
        await resolver.drain()
        clock.advance(hours=1)

    assert statuses[0] is ResolutionStatus.GONE
    assert ResolutionStatus.FOUND not in statuses


@pytest.mark.asyncio
async def test_link_expiring_before_cache_ttl_is_still_refused(creation_service, resolver, cache, clock):
    link = await creation_service.create("https://example.com/a", expires_at=clock.now + datetime.timedelta(hours=1))

    # Simulate a stale entry whose storage TTL outlives the logical expiry.
    await cache.put(link.code, link.long_url, link.expires_at, datetime.timedelta(days=1))
    clock.advance(hours=1, seconds=1)

    assert (await resolver.resolve(link.code)).status is ResolutionStatus.GONE


@pytest.mark.asyncio
async def test_cache_failure_falls_through_to_store(creation_service, store, cache, clock):
    link = await creation_service.create("https://example.com/a")
    cache.get = AsyncMock(return_value=None)
    resolver = RedirectResolver(cache, store, clock=clock)

    assert await resolver.resolve(link.code) == Resolution.found("https://example.com/a")


@pytest.mark.asyncio
async def test_store_failure_on_miss_propagates(resolver, store):
    with patch.object(store, "find_by_code", AsyncMock(side_effect=StoreUnavailableError("down"))):
        with pytest.raises(StoreUnavailableError):
            await resolver.resolve("abc")


@pytest.mark.asyncio
async def test_cleanup_failure_is_not_raised(creation_service, resolver, store, clock):
    link = await creation_service.create("https://example.com/a", expires_at=clock.now + datetime.timedelta(minutes=1))
    clock.advance(minutes=2)

    with patch.object(store, "delete_by_code", AsyncMock(side_effect=StoreUnavailableError("down"))):
        resolution = await resolver.resolve(link.code)
        await resolver.drain()

    assert resolution.status is ResolutionStatus.GONE
    # The row is left behind for the sweeper.
    assert await store.count_links() == 1
