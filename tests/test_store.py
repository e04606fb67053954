"""Link store tests against a SQLite database."""

import asyncio
import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from shortlink.exceptions import CodeConflictError, LinkNotFoundError, StoreUnavailableError
from shortlink.models import ShortLink
from shortlink.store import LinkStore

START = datetime.datetime(2026, 1, 1, 12, 0, 0, tzinfo=datetime.UTC)


def make_link(code: str, long_url: str = "https://example.com", **kwargs) -> ShortLink:
    kwargs.setdefault("created_at", START)
    return ShortLink(code=code, long_url=long_url, **kwargs)


@pytest.mark.asyncio
async def test_insert_and_find(store):
    await store.insert(make_link("abc", "https://example.com/a", owner="alice"))

    link = await store.find_by_code("abc")

    assert link.code == "abc"
    assert link.long_url == "https://example.com/a"
    assert link.owner == "alice"
    assert link.expires_at is None


@pytest.mark.asyncio
async def test_find_missing_code(store):
    with pytest.raises(LinkNotFoundError):
        await store.find_by_code("nope")


@pytest.mark.asyncio
async def test_duplicate_insert_conflicts(store):
    await store.insert(make_link("abc", "https://example.com/first"))

    with pytest.raises(CodeConflictError, match="abc"):
        await store.insert(make_link("abc", "https://example.com/second"))

    assert (await store.find_by_code("abc")).long_url == "https://example.com/first"


@pytest.mark.asyncio
async def test_concurrent_inserts_of_one_code_have_one_winner(store):
    results = await asyncio.gather(
        *(store.insert(make_link("race", f"https://example.com/{i}")) for i in range(8)),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, ShortLink)]
    losers = [r for r in results if isinstance(r, CodeConflictError)]
    assert len(winners) == 1
    assert len(losers) == 7
    assert (await store.find_by_code("race")).long_url == winners[0].long_url


@pytest.mark.asyncio
async def test_deleted_code_cannot_be_reissued(store):
    await store.insert(make_link("abc"))
    assert await store.delete_by_code("abc")

    with pytest.raises(CodeConflictError):
        await store.insert(make_link("abc", "https://other.example.com"))

    with pytest.raises(LinkNotFoundError):
        await store.find_by_code("abc")


@pytest.mark.asyncio
async def test_delete_is_idempotent(store):
    await store.insert(make_link("abc"))

    assert await store.delete_by_code("abc") is True
    assert await store.delete_by_code("abc") is False
    assert await store.delete_by_code("never-existed") is False


@pytest.mark.asyncio
async def test_delete_expired_before(store):
    await store.insert(make_link("old", expires_at=START - datetime.timedelta(days=1)))
    await store.insert(make_link("edge", expires_at=START))
    await store.insert(make_link("future", expires_at=START + datetime.timedelta(days=1)))
    await store.insert(make_link("forever"))

    assert await store.delete_expired_before(START) == 1
    assert await store.delete_expired_before(START + datetime.timedelta(seconds=1)) == 1
    assert await store.delete_expired_before(START + datetime.timedelta(seconds=1)) == 0

    remaining = {link.code for link in await store.list_links()}
    assert remaining == {"future", "forever"}


@pytest.mark.asyncio
async def test_expiry_roundtrips_as_same_instant(store):
    expires_at = START + datetime.timedelta(hours=3)
    await store.insert(make_link("abc", expires_at=expires_at))

    link = await store.find_by_code("abc")

    assert not link.is_expired(START)
    assert link.is_expired(expires_at)


@pytest.mark.asyncio
async def test_reporting_reads(store):
    await store.insert(make_link("a1", owner="alice"))
    await store.insert(make_link("b1", owner="bob"))
    await store.insert(make_link("a2", owner="alice"))

    assert await store.count_links() == 3
    assert await store.count_links(owner="alice") == 2
    assert [link.code for link in await store.list_links(owner="alice")] == ["a1", "a2"]
    assert [link.code for link in await store.list_links(limit=1, offset=1)] == ["b1"]
    assert (await store.get_link_info("b1")).owner == "bob"

    with pytest.raises(LinkNotFoundError):
        await store.get_link_info("zzz")


@pytest.mark.asyncio
async def test_ping(store):
    await store.ping()


def _failing_session_factory() -> MagicMock:
    factory = MagicMock()
    factory.return_value.__aenter__.side_effect = OperationalError("connect", {}, Exception("down"))
    return factory


@pytest.mark.asyncio
async def test_driver_errors_raise_unavailable():
    store = LinkStore(_failing_session_factory())

    with pytest.raises(StoreUnavailableError):
        await store.find_by_code("abc")
    with pytest.raises(StoreUnavailableError):
        await store.insert(make_link("abc"))
    with pytest.raises(StoreUnavailableError):
        await store.ping()


@pytest.mark.asyncio
async def test_slow_store_times_out():
    async def slow_enter(*args):
        await asyncio.sleep(1)

    factory = MagicMock()
    factory.return_value.__aenter__.side_effect = slow_enter
    store = LinkStore(factory, timeout=0.01)

    with pytest.raises(StoreUnavailableError, match="timed out"):
        await store.find_by_code("abc")
