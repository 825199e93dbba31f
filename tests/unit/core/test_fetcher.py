"""
Unit tests for core.fetcher module.

Tests:
- Argument validation and limit clamping
- events cache hits, and partial results never being cached
- Connectivity failures
- Replaceable-kind collapsing
- fetch_latest / fetch_contact_list / fetch_followers / fetch_interactions filtering
"""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest

from tests.conftest import BASE_TIME, contact_list, interaction, make_identity, profile_record
from wotgraph.core.cache import KeyValueCache
from wotgraph.core.exceptions import ConnectivityError, RelaysUnavailableError
from wotgraph.core.fetcher import EventFetcher, FetcherConfig, collapse_replaceable
from wotgraph.models import EventKind, RecordFilter
from wotgraph.models.constants import CacheNamespace


@pytest.fixture(autouse=True)
def passthrough_protocol():
    """Relay results are given as records; skip signature checks and parsing."""
    with (
        patch("wotgraph.core.fetcher.build_filter", side_effect=lambda f: f) as build,
        patch("wotgraph.core.fetcher.verified_events", side_effect=lambda events: iter(events)),
        patch("wotgraph.core.fetcher.parse_record", side_effect=lambda evt: evt),
    ):
        yield build


def _fetcher(results: Any, cache: KeyValueCache | None = None, **config: Any) -> EventFetcher:
    client = MagicMock()
    if isinstance(results, Exception) or callable(results):
        client.fetch_events = AsyncMock(side_effect=results)
    else:
        client.fetch_events = AsyncMock(return_value=results)
    pool = MagicMock()
    pool.client = client
    return EventFetcher(pool, cache, FetcherConfig(**config))


class TestFetch:
    """EventFetcher.fetch()."""

    async def test_empty_authors_rejected(self) -> None:
        fetcher = _fetcher([])
        with pytest.raises(ValueError, match="authors"):
            await fetcher.fetch(RecordFilter(kinds=(3,), authors=()))

    async def test_limit_clamped(self, passthrough_protocol: MagicMock) -> None:
        fetcher = _fetcher([], max_limit=50)
        await fetcher.fetch(RecordFilter(kinds=(3,), limit=1000))
        await fetcher.fetch(RecordFilter(kinds=(3,)))
        limits = [call.args[0].limit for call in passthrough_protocol.call_args_list]
        assert limits == [50, 50]

    async def test_result_cached(self, cache: KeyValueCache) -> None:
        author = make_identity()
        fetcher = _fetcher([contact_list(author, [])], cache)
        f = RecordFilter(kinds=(3,), authors=(author.pubkey,), limit=1)

        first = await fetcher.fetch(f)
        second = await fetcher.fetch(f)
        assert first == second
        assert fetcher._pool.client.fetch_events.await_count == 1
        assert cache.size(CacheNamespace.EVENTS) == 1

    async def test_use_cache_false_bypasses(self, cache: KeyValueCache) -> None:
        fetcher = _fetcher([], cache)
        f = RecordFilter(kinds=(3,), limit=1)
        await fetcher.fetch(f, use_cache=False)
        await fetcher.fetch(f, use_cache=False)
        assert fetcher._pool.client.fetch_events.await_count == 2
        assert cache.size(CacheNamespace.EVENTS) == 0

    async def test_empty_result_not_cached(self, cache: KeyValueCache) -> None:
        fetcher = _fetcher([], cache)
        f = RecordFilter(kinds=(0,), authors=(make_identity().pubkey,), limit=1)
        assert await fetcher.fetch(f) == []
        assert await fetcher.fetch(f) == []
        assert fetcher._pool.client.fetch_events.await_count == 2
        assert cache.size(CacheNamespace.EVENTS) == 0

    async def test_timeout_returns_empty_and_is_not_cached(self, cache: KeyValueCache) -> None:
        async def slow(*_args: Any) -> list[Any]:
            await asyncio.sleep(1)
            return []

        fetcher = _fetcher(slow, cache, timeout_grace=0.0)
        result = await fetcher.fetch(RecordFilter(kinds=(3,), limit=1), timeout=0.01)
        assert result == []
        assert cache.size(CacheNamespace.EVENTS) == 0

    async def test_relay_error_becomes_connectivity_error(self) -> None:
        fetcher = _fetcher(RuntimeError("socket closed"))
        with pytest.raises(ConnectivityError, match="socket closed"):
            await fetcher.fetch(RecordFilter(kinds=(3,), limit=1))

    async def test_unconnected_pool(self) -> None:
        pool = MagicMock()
        type(pool).client = PropertyMock(side_effect=RelaysUnavailableError("not connected"))
        fetcher = EventFetcher(pool)
        with pytest.raises(ConnectivityError):
            await fetcher.fetch(RecordFilter(kinds=(3,), limit=1))

    async def test_unparseable_events_skipped(self, passthrough_protocol: MagicMock) -> None:
        author = make_identity()
        good = contact_list(author, [])

        def parse(evt: Any) -> Any:
            if evt == "garbage":
                raise ValueError("bad event")
            return evt

        fetcher = _fetcher([good, "garbage"])
        with patch("wotgraph.core.fetcher.parse_record", side_effect=parse):
            assert await fetcher.fetch(RecordFilter(kinds=(3,), limit=5)) == [good]


class TestCollapseReplaceable:
    """collapse_replaceable() keeps the newest per (author, kind)."""

    def test_newest_wins(self) -> None:
        author = make_identity()
        old = contact_list(author, [], created_at=BASE_TIME)
        new = contact_list(author, [], created_at=BASE_TIME + 10)
        assert collapse_replaceable([old, new]) == [new]
        assert collapse_replaceable([new, old]) == [new]

    def test_tie_keeps_first(self) -> None:
        author = make_identity()
        first = contact_list(author, [], created_at=BASE_TIME)
        second = contact_list(author, [make_identity()], created_at=BASE_TIME)
        assert collapse_replaceable([first, second]) == [first]

    def test_kinds_kept_apart(self) -> None:
        author = make_identity()
        contacts = contact_list(author, [])
        profile = profile_record(author, name="alice")
        assert collapse_replaceable([contacts, profile]) == [contacts, profile]


class TestConvenienceQueries:
    """fetch_latest(), fetch_contact_list(), fetch_followers()."""

    async def test_fetch_latest_filters_author_and_kind(self) -> None:
        author, other = make_identity(), make_identity()
        mine = profile_record(author, name="alice")
        fetcher = _fetcher([profile_record(other, name="bob"), mine])
        assert await fetcher.fetch_latest(author, EventKind.SET_METADATA) == mine

    async def test_fetch_latest_none(self) -> None:
        fetcher = _fetcher([])
        assert await fetcher.fetch_latest(make_identity(), EventKind.SET_METADATA) is None

    async def test_fetch_contact_list_ignores_other_variants(self) -> None:
        author = make_identity()
        fetcher = _fetcher([profile_record(author, name="alice")])
        assert await fetcher.fetch_contact_list(author) is None

    async def test_fetch_contact_list(self) -> None:
        author = make_identity()
        record = contact_list(author, [make_identity()])
        assert await _fetcher([record]).fetch_contact_list(author) == record

    async def test_fetch_followers_filters_stale_and_self(self) -> None:
        target = make_identity()
        fan, former = make_identity(), make_identity()
        records = [
            contact_list(fan, [target]),
            contact_list(former, [make_identity()]),
            contact_list(target, [target]),
        ]
        fetcher = _fetcher(records)
        assert await fetcher.fetch_followers(target, limit=10) == [records[0]]

    async def test_fetch_followers_limit(self) -> None:
        target = make_identity()
        records = [contact_list(make_identity(), [target]) for _ in range(5)]
        fetcher = _fetcher(records)
        assert len(await fetcher.fetch_followers(target, limit=2)) == 2

    async def test_missing_profile_asked_again(self, cache: KeyValueCache) -> None:
        fetcher = _fetcher([], cache)
        author = make_identity()
        assert await fetcher.fetch_latest(author, EventKind.SET_METADATA) is None
        assert await fetcher.fetch_latest(author, EventKind.SET_METADATA) is None
        assert fetcher._pool.client.fetch_events.await_count == 2

    async def test_fetch_contact_list_without_cache(self, cache: KeyValueCache) -> None:
        author = make_identity()
        fetcher = _fetcher([contact_list(author, [make_identity()])], cache)

        await fetcher.fetch_contact_list(author)
        await fetcher.fetch_contact_list(author)
        assert fetcher._pool.client.fetch_events.await_count == 1

        await fetcher.fetch_contact_list(author, use_cache=False)
        assert fetcher._pool.client.fetch_events.await_count == 2

    async def test_fetch_followers_without_cache(self, cache: KeyValueCache) -> None:
        target = make_identity()
        fetcher = _fetcher([contact_list(make_identity(), [target])], cache)
        await fetcher.fetch_followers(target, limit=5)
        await fetcher.fetch_followers(target, limit=5, use_cache=False)
        assert fetcher._pool.client.fetch_events.await_count == 2


class TestFetchInteractions:
    """EventFetcher.fetch_interactions()."""

    async def test_filter(self, passthrough_protocol: MagicMock) -> None:
        target = make_identity()
        fetcher = _fetcher([])
        await fetcher.fetch_interactions(target, since=BASE_TIME, until=BASE_TIME + 60, limit=20)

        (sent,) = [call.args[0] for call in passthrough_protocol.call_args_list]
        assert sent.kinds == (EventKind.TEXT_NOTE, EventKind.REPOST, EventKind.REACTION)
        assert sent.tags == {"p": (target.pubkey,)}
        assert (sent.since, sent.until, sent.limit) == (BASE_TIME, BASE_TIME + 60, 20)

    async def test_newest_first_without_self_and_other_kinds(self) -> None:
        target, fan, other = make_identity(), make_identity(), make_identity()
        old = interaction(fan, EventKind.TEXT_NOTE, created_at=BASE_TIME)
        new = interaction(other, EventKind.REPOST, created_at=BASE_TIME + 10)
        records = [
            old,
            interaction(target, created_at=BASE_TIME + 20),
            contact_list(fan, [target]),
            new,
        ]
        fetcher = _fetcher(records)
        assert await fetcher.fetch_interactions(target, since=BASE_TIME) == [new, old]

    async def test_cached_unless_disabled(self, cache: KeyValueCache) -> None:
        target = make_identity()
        fetcher = _fetcher([interaction(make_identity())], cache)
        await fetcher.fetch_interactions(target, since=BASE_TIME)
        await fetcher.fetch_interactions(target, since=BASE_TIME)
        await fetcher.fetch_interactions(target, since=BASE_TIME, use_cache=False)
        assert fetcher._pool.client.fetch_events.await_count == 2
