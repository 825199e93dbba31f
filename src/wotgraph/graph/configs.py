"""Graph engine configuration models.

See Also:
    [SocialGraph][wotgraph.graph.engine.SocialGraph]: The facade that consumes
        [SocialGraphConfig][wotgraph.graph.configs.SocialGraphConfig].
    [GraphBuilder][wotgraph.graph.builder.GraphBuilder]: Reads
        [BuildOptions][wotgraph.graph.configs.BuildOptions].
    [RelevanceScorer][wotgraph.graph.scoring.RelevanceScorer]: Reads
        [ScoringConfig][wotgraph.graph.configs.ScoringConfig].
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from wotgraph.core.cache import CacheConfig
from wotgraph.core.fetcher import FetcherConfig
from wotgraph.core.pool import RelayPoolConfig
from wotgraph.models.identity import parse_identity


class BuildOptions(BaseModel):
    """Per-build expansion bounds.

    Frozen so that an options object can be part of a cache key.

    Attributes:
        max_connections_per_node: Contacts taken from each expanded
            contact list, in tag order.
        include_second_degree: Expand the contacts of first-degree nodes.
        max_second_degree_nodes: Global ceiling on new second-degree nodes.
        second_degree_seed_limit: First-degree nodes expanded during the
            second-degree pass, in discovery order.
        include_followers: Also add identities whose contact list names a
            core identity.
        max_followers_per_node: Followers taken per core identity.
        batch_size: Contact lists or profiles fetched concurrently.
        include_interactions: Query notes, reposts and reactions that tag a
            core identity; their authors' newest timestamps feed recency.
        interaction_window_days: How far back interactions are queried.
        max_interactions_per_node: Interaction events requested per core
            identity.
    """

    model_config = ConfigDict(frozen=True)

    max_connections_per_node: int = Field(default=25, ge=1, le=500)
    include_second_degree: bool = False
    max_second_degree_nodes: int = Field(default=50, ge=0, le=5000)
    second_degree_seed_limit: int = Field(default=10, ge=1, le=200)
    include_followers: bool = False
    max_followers_per_node: int = Field(default=10, ge=1, le=500)
    batch_size: int = Field(default=5, ge=1, le=50)
    include_interactions: bool = True
    interaction_window_days: int = Field(default=7, ge=1, le=90)
    max_interactions_per_node: int = Field(default=200, ge=1, le=5000)

    def cache_tag(self) -> str:
        """Compact, stable rendering of every option that changes the result."""
        mode = "extended" if self.include_second_degree else "basic"
        parts = [mode, f"c{self.max_connections_per_node}"]
        if self.include_second_degree:
            parts.append(f"s{self.second_degree_seed_limit}x{self.max_second_degree_nodes}")
        if self.include_followers:
            parts.append(f"f{self.max_followers_per_node}")
        if self.include_interactions:
            parts.append(f"a{self.interaction_window_days}x{self.max_interactions_per_node}")
        return "-".join(parts)


class ScoringConfig(BaseModel):
    """Relevance score weights.

    ``score = core_connection_weight * core_links + mutual_core_bonus *
    mutual_core_links + core_bonus (core nodes only) + recency bonus``,
    where the recency bonus is ``recency_weight * 0.5 ** (age_days /
    recency_half_life_days)`` capped at ``recency_cap``.

    The cap must stay below ``core_connection_weight`` so that activity never
    outranks an additional connection to the core.
    """

    core_bonus: float = Field(default=100.0, ge=0.0)
    core_connection_weight: float = Field(default=3.0, gt=0.0)
    mutual_core_bonus: float = Field(default=2.0, ge=0.0)
    recency_weight: float = Field(default=2.0, ge=0.0)
    recency_cap: float = Field(default=2.0, ge=0.0)
    recency_half_life_days: float = Field(default=14.0, gt=0.0)

    @model_validator(mode="after")
    def _validate_recency_cap(self) -> Self:
        if self.recency_cap >= self.core_connection_weight:
            raise ValueError(
                f"recency_cap ({self.recency_cap}) must be below "
                f"core_connection_weight ({self.core_connection_weight})"
            )
        return self


class SocialGraphConfig(BaseModel):
    """Complete engine configuration, typically loaded from ``config/wotgraph.yaml``.

    Attributes:
        seeds: Default core identities (npub or hex) used when a caller
            supplies none.
        relays: Relay pool settings.
        fetcher: Query time budgets.
        cache: Per-namespace TTLs and ceilings.
        build: Default build options.
        scoring: Relevance weights.
    """

    seeds: list[str] = Field(default_factory=list)
    relays: RelayPoolConfig = Field(default_factory=RelayPoolConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    build: BuildOptions = Field(default_factory=BuildOptions)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    @model_validator(mode="after")
    def _validate_seeds(self) -> Self:
        invalid = [s for s in self.seeds if parse_identity(s) is None]
        if invalid:
            raise ValueError(f"invalid seed identities: {', '.join(invalid)}")
        return self
