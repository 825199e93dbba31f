"""
In-memory key-value cache with per-namespace TTL and size ceilings.

The cache is split into the namespaces of
[CacheNamespace][wotgraph.models.constants.CacheNamespace] (raw event
queries, profiles, assembled graphs), each with its own
[NamespaceConfig][wotgraph.core.cache.NamespaceConfig]:

* Reads never return an entry older than its TTL. Expired entries read as
  absent and are dropped lazily on access, or in bulk by
  [prune()][wotgraph.core.cache.KeyValueCache.prune].
* Writing a new key into a full namespace evicts exactly one entry: the one
  with the oldest ``stored_at``. Reads do not refresh ``stored_at``, so
  eviction follows write order, not access order.
* Writes replace the whole entry. Values are expected to be immutable.

The cache is owned by a [SocialGraph][wotgraph.graph.engine.SocialGraph]
instance and injected into its collaborators; there is no module-level
instance.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, Field

from wotgraph.models.constants import CacheNamespace

from .logger import Logger
from .metrics import CACHE_EVICTIONS_TOTAL, CACHE_REQUESTS_TOTAL


if TYPE_CHECKING:
    from wotgraph.models.identity import Identity


T = TypeVar("T")

Clock = Callable[[], float]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class NamespaceConfig(BaseModel):
    """TTL and entry ceiling for one namespace."""

    ttl: float = Field(gt=0.0, description="Seconds an entry stays fresh")
    max_entries: int = Field(ge=1, description="Entry ceiling; one eviction per overflowing write")


class CacheConfig(BaseModel):
    """Per-namespace cache settings.

    Defaults: profiles 15 minutes / 500 entries, graphs 5 minutes / 10
    entries, raw event queries 10 minutes / 1500 entries.
    """

    events: NamespaceConfig = Field(
        default_factory=lambda: NamespaceConfig(ttl=600.0, max_entries=1500)
    )
    profiles: NamespaceConfig = Field(
        default_factory=lambda: NamespaceConfig(ttl=900.0, max_entries=500)
    )
    graphs: NamespaceConfig = Field(
        default_factory=lambda: NamespaceConfig(ttl=300.0, max_entries=10)
    )

    def for_namespace(self, namespace: CacheNamespace) -> NamespaceConfig:
        config: NamespaceConfig = getattr(self, CacheNamespace(namespace).value)
        return config


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A stored value with its write time and lifetime."""

    value: T
    stored_at: float
    ttl: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.stored_at)

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class KeyValueCache:
    """Namespaced TTL cache with oldest-write eviction.

    Examples:
        ```python
        cache = KeyValueCache()
        cache.set(CacheNamespace.PROFILES, "npub1...", profile)
        cache.get(CacheNamespace.PROFILES, "npub1...")   # profile, or None once expired
        cache.age(CacheNamespace.PROFILES, "npub1...")   # seconds since the write
        cache.clear(CacheNamespace.PROFILES)
        ```

    Args:
        config: Per-namespace TTLs and ceilings.
        clock: Time source returning seconds; injectable for tests.
    """

    def __init__(self, config: CacheConfig | None = None, *, clock: Clock = time.time) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._logger = Logger("cache")
        self._stores: dict[CacheNamespace, dict[str, CacheEntry[Any]]] = {
            namespace: {} for namespace in CacheNamespace
        }

    @property
    def config(self) -> CacheConfig:
        return self._config

    def now(self) -> float:
        """Current time according to the injected clock."""
        return self._clock()

    def _store(self, namespace: CacheNamespace | str) -> dict[str, CacheEntry[Any]]:
        return self._stores[CacheNamespace(namespace)]

    def get(
        self, namespace: CacheNamespace | str, key: str, *, evict_expired: bool = True
    ) -> Any | None:
        """Return the fresh value for ``key``, or ``None``.

        An expired entry is removed on the way out. With ``evict_expired``
        False it stays in place for
        [peek()][wotgraph.core.cache.KeyValueCache.peek] until pruned or
        replaced.
        """
        namespace = CacheNamespace(namespace)
        store = self._store(namespace)
        entry = store.get(key)
        if entry is None:
            CACHE_REQUESTS_TOTAL.labels(namespace=namespace.value, result="miss").inc()
            return None
        if entry.is_expired(self._clock()):
            if evict_expired:
                del store[key]
            CACHE_REQUESTS_TOTAL.labels(namespace=namespace.value, result="expired").inc()
            return None
        CACHE_REQUESTS_TOTAL.labels(namespace=namespace.value, result="hit").inc()
        return entry.value

    def peek(self, namespace: CacheNamespace | str, key: str) -> CacheEntry[Any] | None:
        """Return the raw entry for ``key`` even if expired, without removing it.

        Used to serve a stale graph when relays are unreachable.
        """
        return self._store(namespace).get(key)

    def set(
        self,
        namespace: CacheNamespace | str,
        key: str,
        value: Any,
        ttl: float | None = None,
    ) -> None:
        """Store ``value`` under ``key``, replacing any previous entry.

        When ``key`` is new and the namespace is at its ceiling, the entry
        with the oldest ``stored_at`` is evicted first.

        Args:
            namespace: Target namespace.
            key: Entry key.
            value: Value to store; should be immutable.
            ttl: Lifetime override in seconds; defaults to the namespace TTL.
        """
        namespace = CacheNamespace(namespace)
        ns_config = self._config.for_namespace(namespace)
        store = self._store(namespace)

        if key not in store and len(store) >= ns_config.max_entries:
            oldest_key = min(store, key=lambda k: store[k].stored_at)
            del store[oldest_key]
            CACHE_EVICTIONS_TOTAL.labels(namespace=namespace.value).inc()
            self._logger.debug("cache_evicted", namespace=namespace.value, key=oldest_key)

        store[key] = CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl=ns_config.ttl if ttl is None else ttl,
        )

    def age(self, namespace: CacheNamespace | str, key: str) -> float | None:
        """Seconds since ``key`` was written, or ``None`` if absent or expired."""
        entry = self._store(namespace).get(key)
        if entry is None:
            return None
        now = self._clock()
        if entry.is_expired(now):
            return None
        return entry.age(now)

    def delete(self, namespace: CacheNamespace | str, key: str) -> bool:
        """Remove ``key``; return whether it was present."""
        return self._store(namespace).pop(key, None) is not None

    def clear(self, namespace: CacheNamespace | str | None = None) -> list[CacheNamespace]:
        """Empty one namespace, or all of them when ``namespace`` is ``None``.

        Returns:
            The namespaces that were cleared.
        """
        targets = list(CacheNamespace) if namespace is None else [CacheNamespace(namespace)]
        for target in targets:
            self._stores[target].clear()
        self._logger.info("cache_cleared", namespaces=",".join(t.value for t in targets))
        return targets

    def prune(self, namespace: CacheNamespace | str | None = None) -> int:
        """Drop every expired entry; return how many were removed."""
        targets = list(CacheNamespace) if namespace is None else [CacheNamespace(namespace)]
        now = self._clock()
        removed = 0
        for target in targets:
            store = self._stores[target]
            expired = [k for k, entry in store.items() if entry.is_expired(now)]
            for key in expired:
                del store[key]
            removed += len(expired)
        if removed:
            self._logger.debug("cache_pruned", removed=removed)
        return removed

    def size(self, namespace: CacheNamespace | str) -> int:
        """Number of stored entries, expired ones included until pruned."""
        return len(self._store(namespace))

    def keys(self, namespace: CacheNamespace | str) -> list[str]:
        return list(self._store(namespace))

    def stats(self) -> dict[str, int]:
        """Entry count per namespace."""
        return {namespace.value: len(store) for namespace, store in self._stores.items()}


def profile_cache_key(identity: Identity) -> str:
    """Key of ``identity`` in the ``profiles`` namespace (its npub)."""
    return identity.npub
