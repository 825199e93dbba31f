"""
Relevance scoring for graph nodes.

Scores combine three signals:

* connectivity to the core set -- a fixed weight per distinct core node
  linked in either direction, plus a bonus when that link is mutual;
* a large constant bonus for core nodes, so seeds always rank first;
* a capped recency bonus that halves every ``recency_half_life_days`` since
  the identity was last seen publishing a contact list or interacting with a
  core identity.

Scoring never adds or removes nodes or links; it returns a copy of the graph
with ``score`` populated.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import replace
from typing import TYPE_CHECKING

from wotgraph.models.constants import LinkType
from wotgraph.models.graph import Graph, Node

from .configs import ScoringConfig


if TYPE_CHECKING:
    from collections.abc import Mapping


SECONDS_PER_DAY = 86_400


class RelevanceScorer:
    """Compute node relevance from graph structure and activity.

    Args:
        config: Score weights.
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or ScoringConfig()

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def recency_bonus(self, last_seen: int | None, now: float) -> float:
        """Bonus for an identity last active at ``last_seen``; 0 when unknown."""
        if last_seen is None:
            return 0.0
        age_days = max(0.0, now - last_seen) / SECONDS_PER_DAY
        decayed = self._config.recency_weight * 0.5 ** (age_days / self._config.recency_half_life_days)
        return min(decayed, self._config.recency_cap)

    def score(
        self,
        graph: Graph,
        last_seen: Mapping[str, int] | None = None,
        *,
        now: float | None = None,
    ) -> Graph:
        """Return ``graph`` with every node's ``score`` filled in.

        Args:
            graph: Graph to score.
            last_seen: Newest activity timestamp per hex public key. Nodes
                missing from it keep the ``last_seen`` they already carry.
            now: Reference time for recency; defaults to the current time.
        """
        last_seen = last_seen or {}
        now = time.time() if now is None else now
        config = self._config

        core_ids = {n.id for n in graph.nodes if n.is_core}
        core_links: dict[str, set[str]] = defaultdict(set)
        mutual_core_links: dict[str, set[str]] = defaultdict(set)

        for link in graph.links:
            for node_id, other in ((link.source, link.target), (link.target, link.source)):
                if other in core_ids:
                    core_links[node_id].add(other)
                    if link.type is LinkType.MUTUAL:
                        mutual_core_links[node_id].add(other)

        scored: list[Node] = []
        for node in graph.nodes:
            value = config.core_connection_weight * len(core_links[node.id])
            value += config.mutual_core_bonus * len(mutual_core_links[node.id])
            if node.is_core:
                value += config.core_bonus
            seen = last_seen.get(node.pubkey, node.last_seen) if node.pubkey else None
            value += self.recency_bonus(seen, now)
            scored.append(replace(node, score=value, last_seen=seen))

        return Graph(nodes=tuple(scored), links=graph.links, built_at=graph.built_at)

    @staticmethod
    def rank(graph: Graph, limit: int | None = None) -> list[Node]:
        """Nodes by descending score; ties keep graph order."""
        ranked = sorted(graph.nodes, key=lambda n: -n.score)
        return ranked if limit is None else ranked[:limit]
