"""
Graph construction as an explicit state machine.

[GraphBuilder][wotgraph.graph.builder.GraphBuilder] turns a set of core
identities into an immutable [Graph][wotgraph.models.graph.Graph]. A build
walks the states of [BuildState][wotgraph.models.constants.BuildState]:

1. ``fetching_core`` -- every core input becomes a degree 0 node. Inputs that
   cannot be decoded still produce a degraded core node keyed by the raw
   input, so one typo does not sink the build.
2. ``expanding_first_degree`` -- the newest contact list of each core node is
   fetched in concurrent batches. Up to ``max_connections_per_node`` valid
   contacts are taken in tag order; self-references and malformed keys are
   skipped. Optionally, followers of each core node are added too, and
   notes, reposts and reactions tagging a core node are collected so that
   their authors' activity counts toward recency.
3. ``collapsing_mutuals`` -- a barrier: reciprocal follows become a single
   mutual link. Collapse is idempotent.
4. ``expanding_second_degree`` (optional) -- the first
   ``second_degree_seed_limit`` first-degree nodes are expanded. New
   identities are admitted through a shared counter capped at
   ``max_second_degree_nodes``; links to nodes already present are always
   recorded. Mutuals are collapsed again afterwards.
5. ``backfilling_profiles`` -- nodes without a profile are resolved in
   batches; failures yield placeholders.
6. ``scoring`` then ``complete``.

Before leaving ``idle`` the relay pool must report a connection; otherwise
the build ends in ``unavailable`` and
[RelaysUnavailableError][wotgraph.core.exceptions.RelaysUnavailableError]
propagates. Once started, a failure to fetch one identity's contact list only
removes that identity's outgoing edges.

Contact lists of one batch are fetched concurrently but applied in input
order, so the same relay data always yields the same graph.

A builder is single-use: create one per build.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wotgraph.core.exceptions import ConnectivityError, GraphIntegrityError, RelaysUnavailableError
from wotgraph.core.logger import Logger
from wotgraph.models.constants import BuildState, LinkType
from wotgraph.models.graph import MAX_DEGREE, Graph, Link, Node
from wotgraph.models.identity import NODE_ID_PREFIX, Identity, parse_identity, shorten

from .configs import BuildOptions
from .scoring import SECONDS_PER_DAY, RelevanceScorer


if TYPE_CHECKING:
    from wotgraph.core.fetcher import EventFetcher
    from wotgraph.core.pool import RelayPool
    from wotgraph.models.profile import ProfileMetadata
    from wotgraph.models.record import ContactListRecord, OtherRecord

    from .profiles import ProfileResolver


@dataclass(frozen=True, slots=True)
class BuildProgress:
    """Snapshot handed to progress callbacks on every state transition."""

    state: BuildState
    nodes: int
    links: int
    elapsed: float


ProgressCallback = Callable[[BuildProgress], None]

# interaction windows start on the hour so repeated builds share cache entries
INTERACTION_SINCE_STEP = 3_600


# ---------------------------------------------------------------------------
# Mutual Collapse
# ---------------------------------------------------------------------------


def collapse_mutuals(links: Iterable[Link]) -> list[Link]:
    """Merge reciprocal follows into mutual links.

    ``(A, B, follows)`` plus ``(B, A, follows)`` becomes one ``(A, B, mutual)``
    link placed where the first of the two appeared. Existing mutual links
    are kept, duplicate pairs and self links dropped. Applying the function
    to its own output returns an equal list.
    """
    links = list(links)
    directed = {(link.source, link.target) for link in links if link.type is LinkType.FOLLOWS}
    mutual_pairs = {link.pair for link in links if link.type is LinkType.MUTUAL}

    collapsed: list[Link] = []
    emitted: set[frozenset[str]] = set()
    for link in links:
        pair = link.pair
        if link.source == link.target or pair in emitted:
            continue
        emitted.add(pair)
        if link.type is LinkType.MUTUAL:
            collapsed.append(link)
        elif pair in mutual_pairs or (link.target, link.source) in directed:
            collapsed.append(Link.mutual(link.source, link.target))
        else:
            collapsed.append(link)
    return collapsed


# ---------------------------------------------------------------------------
# Working Set
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _DraftNode:
    node_id: str
    identity: Identity | None
    degree: int
    is_core: bool = False
    is_mutual: bool = False
    display_name: str | None = None
    avatar_url: str | None = None
    nip05: str | None = None
    resolved: bool = False

    def apply_profile(self, profile: ProfileMetadata) -> None:
        fallback = self.identity.short() if self.identity is not None else self.display_name
        self.display_name = profile.label or fallback
        self.avatar_url = profile.picture
        self.nip05 = profile.nip05
        self.resolved = True

    def to_node(self) -> Node:
        if self.identity is not None:
            pubkey, npub = self.identity.pubkey, self.identity.npub
            label = self.display_name or self.identity.short()
        else:
            pubkey, npub = "", self.node_id.removeprefix(NODE_ID_PREFIX)
            label = self.display_name or shorten(npub)
        return Node(
            id=self.node_id,
            pubkey=pubkey,
            npub=npub,
            display_name=label,
            avatar_url=self.avatar_url,
            nip05=self.nip05,
            is_core=self.is_core,
            is_mutual=self.is_mutual,
            degree=self.degree,
        )


@dataclass(slots=True)
class GraphDraft:
    """Mutable nodes and links accumulated during one build."""

    nodes: dict[str, _DraftNode] = field(default_factory=dict)
    links: list[Link] = field(default_factory=list)
    last_seen: dict[str, int] = field(default_factory=dict)
    _directed: set[tuple[str, str]] = field(default_factory=set)

    @classmethod
    def from_graph(cls, graph: Graph) -> GraphDraft:
        """Seed a draft with an existing graph's nodes, links and activity."""
        draft = cls()
        for node in graph.nodes:
            if node.pubkey and node.last_seen is not None:
                draft.last_seen[node.pubkey] = node.last_seen
            draft.nodes[node.id] = _DraftNode(
                node_id=node.id,
                identity=parse_identity(node.pubkey) if node.pubkey else None,
                degree=node.degree,
                is_core=node.is_core,
                is_mutual=node.is_mutual,
                display_name=node.display_name,
                avatar_url=node.avatar_url,
                nip05=node.nip05,
                resolved=True,
            )
        for link in graph.links:
            draft.links.append(link)
            draft._directed.add((link.source, link.target))
            if link.type is LinkType.MUTUAL:
                draft._directed.add((link.target, link.source))
        return draft

    def count_by_degree(self, degree: int) -> int:
        return sum(1 for n in self.nodes.values() if n.degree == degree)

    def add_follow(self, source: str, target: str) -> bool:
        """Record ``source`` follows ``target``; False for self or repeated edges."""
        if source == target or (source, target) in self._directed:
            return False
        self._directed.add((source, target))
        self.links.append(Link.follows(source, target))
        return True

    def collapse(self) -> int:
        """Collapse mutual pairs in place; return the number of mutual links."""
        self.links = collapse_mutuals(self.links)
        mutual = 0
        for link in self.links:
            if link.type is LinkType.MUTUAL:
                mutual += 1
                self.nodes[link.source].is_mutual = True
                self.nodes[link.target].is_mutual = True
        return mutual

    def see(self, pubkey: str, created_at: int) -> None:
        if created_at > self.last_seen.get(pubkey, -1):
            self.last_seen[pubkey] = created_at

    def to_graph(self, built_at: int) -> Graph:
        try:
            return Graph(
                nodes=tuple(n.to_node() for n in self.nodes.values()),
                links=tuple(self.links),
                built_at=built_at,
            )
        except ValueError as e:
            raise GraphIntegrityError(str(e)) from e


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class GraphBuilder:
    """Single-use builder for one graph.

    Args:
        pool: Relay pool gating the build.
        fetcher: Relay query front end.
        profiles: Profile resolver.
        scorer: Relevance scorer; defaults to default weights.
        options: Expansion bounds.
        progress: Called with a [BuildProgress][wotgraph.graph.builder.BuildProgress]
            on every state transition.
        clock: Time source for ``built_at`` and recency.
        refresh: Bypass the event cache for every relay query of this build.

    Examples:
        ```python
        builder = GraphBuilder(pool, fetcher, profiles, options=BuildOptions())
        graph = await builder.build(["npub1...", "npub1..."])
        builder.state  # BuildState.COMPLETE
        ```
    """

    def __init__(
        self,
        pool: RelayPool,
        fetcher: EventFetcher,
        profiles: ProfileResolver,
        scorer: RelevanceScorer | None = None,
        options: BuildOptions | None = None,
        *,
        progress: ProgressCallback | None = None,
        clock: Callable[[], float] = time.time,
        refresh: bool = False,
    ) -> None:
        self._pool = pool
        self._fetcher = fetcher
        self._profiles = profiles
        self._scorer = scorer or RelevanceScorer()
        self._options = options or BuildOptions()
        self._progress = progress
        self._clock = clock
        self._use_cache = not refresh

        self._state = BuildState.IDLE
        self._draft = GraphDraft()
        self._lock = asyncio.Lock()
        self._second_degree_admitted = 0
        self._second_degree_capacity = self._options.max_second_degree_nodes
        self._failed_fetches = 0
        self._started = 0.0
        self._logger = Logger("graph_builder").bind(build=uuid.uuid4().hex[:8])

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def options(self) -> BuildOptions:
        return self._options

    @property
    def failed_fetches(self) -> int:
        """Relay queries that failed during this build."""
        return self._failed_fetches

    # -------------------------------------------------------------------------
    # Entry Points
    # -------------------------------------------------------------------------

    async def build(self, seeds: Sequence[str]) -> Graph:
        """Build the graph for ``seeds`` (npub or hex strings).

        Raises:
            ValueError: If ``seeds`` contains no non-blank entry.
            RelaysUnavailableError: If no relay is reachable before the build
                starts.
            RuntimeError: If this builder has already run.
        """
        seeds = [s.strip() for s in seeds if isinstance(s, str) and s.strip()]
        if not seeds:
            raise ValueError("at least one seed identity is required")
        await self._begin()

        self._transition(BuildState.FETCHING_CORE)
        core = self._add_core_nodes(seeds)
        await self._apply_profiles(core)

        self._transition(BuildState.EXPANDING_FIRST_DEGREE)
        await self._expand(core, degree=1)
        if self._options.include_followers:
            await self._add_followers(core)
        if self._options.include_interactions:
            await self._collect_interactions(core)
        self._collapse()

        if self._options.include_second_degree:
            self._transition(BuildState.EXPANDING_SECOND_DEGREE)
            first_degree = [
                n.identity
                for n in self._draft.nodes.values()
                if n.degree == 1 and n.identity is not None
            ]
            await self._expand(first_degree[: self._options.second_degree_seed_limit], degree=2)
            self._collapse()

        return await self._finish()

    async def expand(self, graph: Graph, target: str, limit: int | None = None) -> Graph:
        """Return a copy of ``graph`` with one node's contacts added.

        New contacts are placed one degree further out than the expanded
        node. Contacts of a degree 2 node are only linked if already present,
        and new degree 2 nodes count against ``max_second_degree_nodes``.

        Raises:
            ValueError: If ``target`` is malformed or not in ``graph``.
            RelaysUnavailableError: If no relay is reachable.
        """
        identity = parse_identity(target)
        if identity is None:
            raise ValueError(f"malformed identity: {target}")
        node = graph.get(identity.node_id)
        if node is None:
            raise ValueError(f"identity not in graph: {identity.short()}")

        self._draft = GraphDraft.from_graph(graph)
        self._second_degree_admitted = self._draft.count_by_degree(2)
        await self._begin()

        degree = min(node.degree + 1, MAX_DEGREE + 1)
        self._transition(
            BuildState.EXPANDING_FIRST_DEGREE if degree == 1 else BuildState.EXPANDING_SECOND_DEGREE
        )
        record = await self._fetch_contacts(identity)
        async with self._lock:
            self._apply_contacts(
                identity, record, degree, limit or self._options.max_connections_per_node
            )
        self._collapse()
        return await self._finish()

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _begin(self) -> None:
        if self._state is not BuildState.IDLE:
            raise RuntimeError(f"GraphBuilder already used (state={self._state})")
        self._started = time.monotonic()
        self._logger.info(
            "graph_build_started",
            nodes=len(self._draft.nodes),
            options=self._options.cache_tag(),
        )
        try:
            await self._pool.ensure_connected()
        except RelaysUnavailableError:
            self._transition(BuildState.UNAVAILABLE)
            raise

    async def _finish(self) -> Graph:
        self._transition(BuildState.BACKFILLING_PROFILES)
        pending = [
            n.identity for n in self._draft.nodes.values() if n.identity is not None and not n.resolved
        ]
        await self._apply_profiles(pending)

        self._transition(BuildState.SCORING)
        now = self._clock()
        graph = self._scorer.score(
            self._draft.to_graph(built_at=int(now)),
            self._draft.last_seen,
            now=now,
        )

        self._transition(BuildState.COMPLETE)
        self._logger.info(
            "graph_build_completed",
            nodes=len(graph.nodes),
            links=len(graph.links),
            second_degree=graph.count_by_degree(2),
            failed_fetches=self._failed_fetches,
            duration_s=round(time.monotonic() - self._started, 3),
        )
        return graph

    def _add_core_nodes(self, seeds: Sequence[str]) -> list[Identity]:
        core: list[Identity] = []
        for raw in seeds:
            identity = parse_identity(raw)
            if identity is None:
                node_id = f"{NODE_ID_PREFIX}{raw}"
                if node_id not in self._draft.nodes:
                    self._logger.warning("core_identity_invalid", value=shorten(raw))
                    self._draft.nodes[node_id] = _DraftNode(
                        node_id=node_id,
                        identity=None,
                        degree=0,
                        is_core=True,
                        display_name=shorten(raw),
                        resolved=True,
                    )
                continue
            if identity.node_id in self._draft.nodes:
                continue
            self._draft.nodes[identity.node_id] = _DraftNode(
                node_id=identity.node_id,
                identity=identity,
                degree=0,
                is_core=True,
            )
            core.append(identity)
        return core

    async def _apply_profiles(self, identities: Sequence[Identity]) -> None:
        if not identities:
            return
        profiles = await self._profiles.resolve_many(identities)
        for identity in identities:
            profile = profiles.get(identity.pubkey)
            if profile is not None:
                self._draft.nodes[identity.node_id].apply_profile(profile)

    async def _expand(self, sources: Sequence[Identity], degree: int) -> None:
        limit = self._options.max_connections_per_node
        batch_size = self._options.batch_size
        for start in range(0, len(sources), batch_size):
            batch = sources[start : start + batch_size]
            records = await asyncio.gather(*(self._fetch_contacts(source) for source in batch))
            async with self._lock:
                for source, record in zip(batch, records, strict=True):
                    self._apply_contacts(source, record, degree, limit)

    def _apply_contacts(
        self, source: Identity, record: ContactListRecord | None, degree: int, limit: int
    ) -> None:
        """Link ``source`` to its first ``limit`` valid contacts; caller holds the lock."""
        if record is None:
            return
        self._draft.see(source.pubkey, record.created_at)

        contacts: list[Identity] = []
        for pubkey in record.follows:
            if pubkey == source.pubkey:
                continue
            identity = parse_identity(pubkey)
            if identity is None:
                continue
            contacts.append(identity)
            if len(contacts) >= limit:
                break

        for contact in contacts:
            if self._admit(contact, degree):
                self._draft.add_follow(source.node_id, contact.node_id)

    async def _add_followers(self, core: Sequence[Identity]) -> None:
        limit = self._options.max_followers_per_node
        batch_size = self._options.batch_size
        for start in range(0, len(core), batch_size):
            batch = core[start : start + batch_size]
            results = await asyncio.gather(
                *(self._fetch_followers(identity, limit) for identity in batch)
            )
            async with self._lock:
                for followed, records in zip(batch, results, strict=True):
                    for record in records:
                        follower = parse_identity(record.author)
                        if follower is None or not self._admit(follower, 1):
                            continue
                        self._draft.see(follower.pubkey, record.created_at)
                        self._draft.add_follow(follower.node_id, followed.node_id)

    async def _collect_interactions(self, core: Sequence[Identity]) -> None:
        window = self._options.interaction_window_days * SECONDS_PER_DAY
        since = (int(self._clock()) - window) // INTERACTION_SINCE_STEP * INTERACTION_SINCE_STEP
        batch_size = self._options.batch_size
        seen = 0
        for start in range(0, len(core), batch_size):
            batch = core[start : start + batch_size]
            results = await asyncio.gather(
                *(self._fetch_interactions(identity, since) for identity in batch)
            )
            for records in results:
                for record in records:
                    self._draft.see(record.author, record.created_at)
                    seen += 1
        self._logger.debug("interactions_collected", events=seen, since=since)

    def _admit(self, identity: Identity, degree: int) -> bool:
        """Ensure a node exists for ``identity``; False if refused by a cap.

        Callers hold ``self._lock`` so the second-degree counter is shared
        safely across concurrent expansions.
        """
        if identity.node_id in self._draft.nodes:
            return True
        if degree > MAX_DEGREE:
            return False
        if degree == MAX_DEGREE:
            if self._second_degree_admitted >= self._second_degree_capacity:
                return False
            self._second_degree_admitted += 1
        self._draft.nodes[identity.node_id] = _DraftNode(
            node_id=identity.node_id,
            identity=identity,
            degree=degree,
        )
        return True

    def _collapse(self) -> None:
        self._transition(BuildState.COLLAPSING_MUTUALS)
        mutual = self._draft.collapse()
        self._logger.debug("mutuals_collapsed", mutual_links=mutual, links=len(self._draft.links))

    # -------------------------------------------------------------------------
    # Relay Access
    # -------------------------------------------------------------------------

    async def _fetch_contacts(self, identity: Identity) -> ContactListRecord | None:
        try:
            record = await self._fetcher.fetch_contact_list(identity, use_cache=self._use_cache)
        except ConnectivityError as e:
            self._failed_fetches += 1
            self._logger.warning(
                "contact_list_fetch_failed", npub=identity.short(), error=str(e)
            )
            return None
        if record is None:
            self._logger.debug("contact_list_not_found", npub=identity.short())
        return record

    async def _fetch_followers(self, identity: Identity, limit: int) -> list[ContactListRecord]:
        try:
            return await self._fetcher.fetch_followers(identity, limit, use_cache=self._use_cache)
        except ConnectivityError as e:
            self._failed_fetches += 1
            self._logger.warning("followers_fetch_failed", npub=identity.short(), error=str(e))
            return []

    async def _fetch_interactions(self, identity: Identity, since: int) -> list[OtherRecord]:
        try:
            return await self._fetcher.fetch_interactions(
                identity,
                since,
                limit=self._options.max_interactions_per_node,
                use_cache=self._use_cache,
            )
        except ConnectivityError as e:
            self._failed_fetches += 1
            self._logger.warning(
                "interactions_fetch_failed", npub=identity.short(), error=str(e)
            )
            return []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _transition(self, state: BuildState) -> None:
        self._state = state
        progress = BuildProgress(
            state=state,
            nodes=len(self._draft.nodes),
            links=len(self._draft.links),
            elapsed=round(time.monotonic() - self._started, 3),
        )
        self._logger.debug("state_changed", state=state.value, nodes=progress.nodes)
        if self._progress is None:
            return
        try:
            self._progress(progress)
        except Exception as e:  # Intentionally broad: observers must not abort a build
            self._logger.warning("progress_callback_failed", state=state.value, error=str(e))
