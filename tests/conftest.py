"""
Pytest configuration and shared fixtures for WotGraph tests.

Provides:
- Fresh identities generated with ``nostr_sdk.Keys``
- Record builders for contact lists and profiles
- A scripted fetcher and a pool stub for graph construction tests
- A controllable clock for TTL tests
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from itertools import count
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from nostr_sdk import Keys

from wotgraph.core.cache import KeyValueCache
from wotgraph.core.exceptions import ConnectivityError
from wotgraph.core.pool import RelayPool
from wotgraph.models import (
    ContactListRecord,
    EventKind,
    Identity,
    ProfileMetadata,
    ProfileRecord,
)
from wotgraph.models.record import OtherRecord


_event_ids = count(1)

BASE_TIME = 1_700_000_000


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Identity & Record Helpers
# ============================================================================


def make_identity() -> Identity:
    """A fresh identity backed by a valid secp256k1 key."""
    return Identity(Keys.generate().public_key().to_hex())


def make_identities(n: int) -> list[Identity]:
    return [make_identity() for _ in range(n)]


def contact_list(
    author: Identity,
    follows: Iterable[Identity | str],
    created_at: int = BASE_TIME,
) -> ContactListRecord:
    """Kind 3 record of ``author`` following ``follows`` in order."""
    keys = tuple(f.pubkey if isinstance(f, Identity) else f for f in follows)
    return ContactListRecord(
        event_id=f"{next(_event_ids):064x}",
        author=author.pubkey,
        kind=EventKind.CONTACTS,
        created_at=created_at,
        follows=keys,
    )


def profile_record(author: Identity, created_at: int = BASE_TIME, **fields: Any) -> ProfileRecord:
    """Kind 0 record of ``author`` with the given profile fields."""
    return ProfileRecord(
        event_id=f"{next(_event_ids):064x}",
        author=author.pubkey,
        kind=EventKind.SET_METADATA,
        created_at=created_at,
        profile=ProfileMetadata(**fields),
    )


def interaction(
    author: Identity,
    kind: int = EventKind.REACTION,
    created_at: int = BASE_TIME,
) -> OtherRecord:
    """Note, repost or reaction signed by ``author``."""
    return OtherRecord(
        event_id=f"{next(_event_ids):064x}",
        author=author.pubkey,
        kind=kind,
        created_at=created_at,
        content="",
    )


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = float(BASE_TIME)) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedFetcher:
    """Stand-in for EventFetcher answering from in-memory records.

    ``contacts`` and ``profiles`` map hex keys to a record, or to an
    exception instance raised when that key is queried. ``followers`` and
    ``interactions`` map a hex key to the records that reference it.
    ``use_cache_flags`` records the ``use_cache`` argument of every
    contact, follower and interaction query. ``delays`` slows the contact
    list query of individual keys.
    """

    def __init__(self) -> None:
        self.contacts: dict[str, ContactListRecord | Exception] = {}
        self.profiles: dict[str, ProfileRecord | Exception] = {}
        self.followers: dict[str, list[ContactListRecord]] = {}
        self.interactions: dict[str, list[OtherRecord] | Exception] = {}
        self.interaction_calls: list[tuple[str, int]] = []
        self.use_cache_flags: list[bool] = []
        self.contact_calls: list[str] = []
        self.profile_calls: list[str] = []
        self.delay = 0.0
        self.delays: dict[str, float] = {}

    def follows(self, author: Identity, targets: Iterable[Identity | str], **kwargs: Any) -> None:
        self.contacts[author.pubkey] = contact_list(author, targets, **kwargs)

    def profile(self, author: Identity, **fields: Any) -> None:
        self.profiles[author.pubkey] = profile_record(author, **fields)

    async def fetch_contact_list(
        self,
        identity: Identity,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> ContactListRecord | None:
        self.contact_calls.append(identity.pubkey)
        self.use_cache_flags.append(use_cache)
        delay = self.delays.get(identity.pubkey, self.delay)
        if delay:
            await asyncio.sleep(delay)
        value = self.contacts.get(identity.pubkey)
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_latest(
        self,
        author: Identity,
        kind: int,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> ProfileRecord | None:
        self.profile_calls.append(author.pubkey)
        value = self.profiles.get(author.pubkey)
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_followers(
        self,
        identity: Identity,
        limit: int,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> list[ContactListRecord]:
        self.use_cache_flags.append(use_cache)
        value = self.followers.get(identity.pubkey, [])
        if isinstance(value, Exception):
            raise value
        return list(value)[:limit]

    async def fetch_interactions(
        self,
        identity: Identity,
        since: int,
        until: int | None = None,
        limit: int | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> list[OtherRecord]:
        self.interaction_calls.append((identity.pubkey, since))
        self.use_cache_flags.append(use_cache)
        value = self.interactions.get(identity.pubkey, [])
        if isinstance(value, Exception):
            raise value
        return [r for r in value if r.created_at >= since][:limit]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> KeyValueCache:
    return KeyValueCache(clock=clock)


@pytest.fixture
def fetcher() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def pool() -> MagicMock:
    """RelayPool stub that is always connected."""
    mock = MagicMock(spec=RelayPool)
    mock.ensure_connected = AsyncMock(return_value=None)
    mock.reconnect = AsyncMock(return_value=True)
    mock.connect = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    mock.refresh_status = AsyncMock(return_value={"wss://relay.example.com": "connected"})
    mock.relay_status = MagicMock(return_value={"wss://relay.example.com": "connected"})
    mock.connected_relays = MagicMock(return_value=["wss://relay.example.com"])
    return mock


@pytest.fixture
def failing_connectivity() -> ConnectivityError:
    return ConnectivityError("relay query failed: boom")
