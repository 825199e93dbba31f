"""
Query facade over relay access, caching and graph construction.

[SocialGraph][wotgraph.graph.engine.SocialGraph] owns one
[RelayPool][wotgraph.core.pool.RelayPool], one
[KeyValueCache][wotgraph.core.cache.KeyValueCache] and one
[InFlightGuard][wotgraph.core.inflight.InFlightGuard] for its lifetime and
wires them into the fetcher, the profile resolver and a fresh
[GraphBuilder][wotgraph.graph.builder.GraphBuilder] per build.

``get_graph`` serves a fresh cached graph when one exists. Otherwise it
builds, and concurrent callers asking for the same seeds and options share
the one build in flight.

Examples:
    ```python
    async with SocialGraph.from_yaml("config/wotgraph.yaml") as engine:
        graph = await engine.get_graph(["npub1..."])
        profile = await engine.get_profile("npub1...")
    ```
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Self

from wotgraph.core.cache import KeyValueCache
from wotgraph.core.exceptions import DecodeError, RelaysUnavailableError
from wotgraph.core.fetcher import EventFetcher
from wotgraph.core.inflight import InFlightGuard
from wotgraph.core.logger import Logger
from wotgraph.core.metrics import GRAPH_BUILD_DURATION_SECONDS, GRAPH_BUILDS_TOTAL
from wotgraph.core.pool import RelayPool
from wotgraph.core.yaml import load_yaml
from wotgraph.models.constants import CacheNamespace
from wotgraph.models.graph import Graph
from wotgraph.models.identity import parse_identity

from .builder import GraphBuilder, ProgressCallback
from .configs import BuildOptions, SocialGraphConfig
from .profiles import ProfileResolver
from .scoring import RelevanceScorer


if TYPE_CHECKING:
    from types import TracebackType

    from wotgraph.models.profile import ProfileMetadata


DEFAULT_EXPAND_LIMIT = 30


def normalize_seeds(seeds: Iterable[str]) -> list[str]:
    """Strip, drop blanks, convert decodable entries to npub, dedupe in order."""
    normalized: list[str] = []
    for raw in seeds:
        value = raw.strip()
        if not value:
            continue
        identity = parse_identity(value)
        normalized.append(identity.npub if identity is not None else value)
    return list(dict.fromkeys(normalized))


def graph_cache_key(seeds: Iterable[str], options: BuildOptions) -> str:
    """Key of a graph in the ``graphs`` namespace.

    Seed order and encoding (npub or hex) do not change the key; every
    option that changes the result does.
    """
    return f"graph:{','.join(sorted(normalize_seeds(seeds)))}:{options.cache_tag()}"


class SocialGraph:
    """Social graph engine.

    Args:
        config: Engine configuration; defaults to
            [SocialGraphConfig][wotgraph.graph.configs.SocialGraphConfig]
            defaults.
        pool: Relay pool; built from ``config.relays`` when omitted.
        cache: Cache; built from ``config.cache`` when omitted.
        fetcher: Relay query front end; built from the pool and cache when
            omitted.
    """

    def __init__(
        self,
        config: SocialGraphConfig | None = None,
        *,
        pool: RelayPool | None = None,
        cache: KeyValueCache | None = None,
        fetcher: EventFetcher | None = None,
    ) -> None:
        self._config = config or SocialGraphConfig()
        self._pool = pool or RelayPool(self._config.relays)
        self._cache = cache or KeyValueCache(self._config.cache)
        self._fetcher = fetcher or EventFetcher(self._pool, self._cache, self._config.fetcher)
        self._profiles = ProfileResolver(
            self._fetcher, self._cache, batch_size=self._config.build.batch_size
        )
        self._scorer = RelevanceScorer(self._config.scoring)
        self._builds: InFlightGuard[Graph] = InFlightGuard("graph_builds")
        self._logger = Logger("social_graph")

    @classmethod
    def from_yaml(cls, config_path: str) -> Self:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(SocialGraphConfig(**data))

    @property
    def config(self) -> SocialGraphConfig:
        return self._config

    @property
    def pool(self) -> RelayPool:
        return self._pool

    @property
    def cache(self) -> KeyValueCache:
        return self._cache

    @property
    def fetcher(self) -> EventFetcher:
        return self._fetcher

    @property
    def profiles(self) -> ProfileResolver:
        return self._profiles

    @property
    def scorer(self) -> RelevanceScorer:
        return self._scorer

    def _seeds_or_default(self, seeds: Sequence[str] | None) -> list[str]:
        normalized = normalize_seeds(self._config.seeds if seeds is None else seeds)
        if not normalized:
            raise ValueError("at least one seed identity is required")
        return normalized

    def new_builder(
        self,
        options: BuildOptions | None = None,
        progress: ProgressCallback | None = None,
        *,
        refresh: bool = False,
    ) -> GraphBuilder:
        """A single-use builder wired to this engine's collaborators.

        With ``refresh`` the builder skips the event cache for its relay queries.
        """
        return GraphBuilder(
            self._pool,
            self._fetcher,
            self._profiles,
            self._scorer,
            options or self._config.build,
            progress=progress,
            refresh=refresh,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_graph(
        self,
        seeds: Sequence[str] | None = None,
        options: BuildOptions | None = None,
        *,
        force_refresh: bool = False,
        progress: ProgressCallback | None = None,
    ) -> Graph:
        """Return the graph for ``seeds``, from cache or by building it.

        Args:
            seeds: Core identities (npub or hex); defaults to
                ``config.seeds``.
            options: Build options; defaults to ``config.build``.
            force_refresh: Skip the graph cache lookup and rebuild from fresh
                relay queries, bypassing cached events too.
            progress: State-transition callback. Only the caller that starts
                a build receives transitions.

        Raises:
            ValueError: If no seed remains after normalization.
            RelaysUnavailableError: If the build cannot reach any relay.
        """
        seeds = self._seeds_or_default(seeds)
        options = options or self._config.build
        key = graph_cache_key(seeds, options)

        if not force_refresh:
            # expired graphs stay in place as the stale fallback
            cached = self._cache.get(CacheNamespace.GRAPHS, key, evict_expired=False)
            if isinstance(cached, Graph):
                self._logger.debug("graph_cache_hit", key=key)
                return cached

        async def build() -> Graph:
            start = time.monotonic()
            builder = self.new_builder(options, progress, refresh=force_refresh)
            try:
                graph = await builder.build(seeds)
            except RelaysUnavailableError:
                GRAPH_BUILDS_TOTAL.labels(outcome="unavailable").inc()
                raise
            except Exception:
                GRAPH_BUILDS_TOTAL.labels(outcome="failed").inc()
                raise
            GRAPH_BUILD_DURATION_SECONDS.observe(time.monotonic() - start)
            GRAPH_BUILDS_TOTAL.labels(
                outcome="partial" if builder.failed_fetches else "complete"
            ).inc()
            self._cache.set(CacheNamespace.GRAPHS, key, graph)
            return graph

        return await self._builds.run(key, build)

    def cached_graph(
        self,
        seeds: Sequence[str] | None = None,
        options: BuildOptions | None = None,
        *,
        allow_stale: bool = True,
    ) -> tuple[Graph, float] | None:
        """Cached graph and its age in seconds, without touching relays.

        With ``allow_stale`` an expired entry is still returned, for use as
        a fallback when relays are unreachable.
        """
        key = graph_cache_key(self._seeds_or_default(seeds), options or self._config.build)
        if not allow_stale:
            graph = self._cache.get(CacheNamespace.GRAPHS, key, evict_expired=False)
            age = self._cache.age(CacheNamespace.GRAPHS, key)
            return (graph, age or 0.0) if isinstance(graph, Graph) else None
        entry = self._cache.peek(CacheNamespace.GRAPHS, key)
        if entry is None or not isinstance(entry.value, Graph):
            return None
        return entry.value, entry.age(self._cache.now())

    async def get_profile(self, identity: str) -> ProfileMetadata:
        """Profile for an npub or hex identity; a placeholder when unavailable.

        Raises:
            DecodeError: If ``identity`` cannot be decoded.
        """
        parsed = parse_identity(identity)
        if parsed is None:
            raise DecodeError(f"malformed identity: {identity}")
        if self._profiles.cached(parsed) is None:
            await self._pool.reconnect()
        return await self._profiles.resolve(parsed)

    async def expand_node(
        self,
        graph: Graph,
        identity: str,
        limit: int = DEFAULT_EXPAND_LIMIT,
        options: BuildOptions | None = None,
    ) -> Graph:
        """New graph with the contacts of one node added.

        Raises:
            ValueError: If ``identity`` is malformed or not in ``graph``.
            RelaysUnavailableError: If no relay is reachable.
        """
        builder = self.new_builder(options)
        expanded = await builder.expand(graph, identity, limit)
        self._logger.info(
            "node_expanded",
            added_nodes=len(expanded.nodes) - len(graph.nodes),
            added_links=len(expanded.links) - len(graph.links),
        )
        return expanded

    async def is_following(self, follower: str, followed: str) -> bool:
        """Whether ``follower``'s newest contact list names ``followed``.

        Raises:
            DecodeError: If either identity cannot be decoded.
            ConnectivityError: If the query fails.
        """
        source, target = parse_identity(follower), parse_identity(followed)
        if source is None or target is None:
            raise DecodeError(f"malformed identity: {follower if source is None else followed}")
        await self._pool.ensure_connected()
        record = await self._fetcher.fetch_contact_list(source)
        return record is not None and target.pubkey in record.follows

    def clear_caches(self, namespace: CacheNamespace | str | None = None) -> list[str]:
        """Drop cached entries in one namespace, or all of them.

        Returns:
            Names of the cleared namespaces.

        Raises:
            ValueError: If ``namespace`` is not a known namespace.
        """
        return [n.value for n in self._cache.clear(namespace)]

    def relay_status(self) -> dict[str, str]:
        """Last known state of each configured relay."""
        return self._pool.relay_status()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Connect the relay pool; False (not an error) if nothing is reachable yet."""
        connected = await self._pool.connect()
        if not connected:
            self._logger.warning("engine_started_without_relays")
        return connected

    async def close(self) -> None:
        await self._pool.close()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
