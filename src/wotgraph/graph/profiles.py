"""
Cache-first profile resolution with graceful degradation.

[ProfileResolver][wotgraph.graph.profiles.ProfileResolver] turns an identity
into [ProfileMetadata][wotgraph.models.profile.ProfileMetadata]. A fresh
cache entry short-circuits the relay query; otherwise the newest kind 0
record is fetched, cached with the profile TTL, and returned.

Resolution never fails: if the record is missing, undecodable, or the query
errors, a placeholder labelled with the shortened npub is returned instead.
Placeholders are not cached, so the next request tries the relays again.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from wotgraph.core.cache import profile_cache_key
from wotgraph.core.exceptions import ConnectivityError
from wotgraph.core.logger import Logger
from wotgraph.models.constants import CacheNamespace, EventKind
from wotgraph.models.profile import ProfileMetadata
from wotgraph.models.record import ProfileRecord


if TYPE_CHECKING:
    from collections.abc import Iterable

    from wotgraph.core.cache import KeyValueCache
    from wotgraph.core.fetcher import EventFetcher
    from wotgraph.models.identity import Identity


DEFAULT_BATCH_SIZE = 5


class ProfileResolver:
    """Resolve identities to profiles through the ``profiles`` cache namespace.

    Args:
        fetcher: Relay query front end.
        cache: Shared cache.
        batch_size: Profiles fetched concurrently by
            [resolve_many()][wotgraph.graph.profiles.ProfileResolver.resolve_many].
    """

    def __init__(
        self,
        fetcher: EventFetcher,
        cache: KeyValueCache,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._fetcher = fetcher
        self._cache = cache
        self._batch_size = batch_size
        self._logger = Logger("profile_resolver")

    def cached(self, identity: Identity) -> ProfileMetadata | None:
        """Fresh cached profile for ``identity``, without touching relays."""
        value = self._cache.get(CacheNamespace.PROFILES, profile_cache_key(identity))
        return value if isinstance(value, ProfileMetadata) else None

    async def resolve(self, identity: Identity) -> ProfileMetadata:
        """Return the profile for ``identity``; never raises on relay trouble."""
        cached = self.cached(identity)
        if cached is not None:
            return cached

        try:
            record = await self._fetcher.fetch_latest(identity, EventKind.SET_METADATA)
        except ConnectivityError as e:
            self._logger.warning("profile_fetch_failed", npub=identity.short(), error=str(e))
            return ProfileMetadata.placeholder(identity)

        if not isinstance(record, ProfileRecord):
            self._logger.debug("profile_not_found", npub=identity.short())
            return ProfileMetadata.placeholder(identity)

        self._cache.set(CacheNamespace.PROFILES, profile_cache_key(identity), record.profile)
        return record.profile

    async def resolve_many(self, identities: Iterable[Identity]) -> dict[str, ProfileMetadata]:
        """Resolve several identities in concurrent batches.

        Returns:
            Profiles keyed by hex public key, one per distinct identity.
        """
        unique = list(dict.fromkeys(identities))
        resolved: dict[str, ProfileMetadata] = {}

        for start in range(0, len(unique), self._batch_size):
            batch = unique[start : start + self._batch_size]
            profiles = await asyncio.gather(*(self.resolve(identity) for identity in batch))
            for identity, profile in zip(batch, profiles, strict=True):
                resolved[identity.pubkey] = profile

        placeholders = sum(1 for p in resolved.values() if p.is_placeholder)
        self._logger.debug("profiles_resolved", total=len(resolved), placeholders=placeholders)
        return resolved
