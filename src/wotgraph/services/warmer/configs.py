"""Warmer service configuration models.

See Also:
    [Warmer][wotgraph.services.warmer.Warmer]: The service class
        that consumes these configurations.
    [BaseServiceConfig][wotgraph.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from wotgraph.core.base_service import BaseServiceConfig
from wotgraph.graph.configs import BuildOptions  # noqa: TC001 (Pydantic runtime)
from wotgraph.models.identity import parse_identity


class SeedGroup(BaseModel):
    """One set of core identities kept warm in the graph cache.

    ``options`` of ``None`` means the engine's default build options, so the
    warmed entry is the one a caller without explicit options hits.

    See Also:
        [WarmerConfig][wotgraph.services.warmer.WarmerConfig]: Parent
            config that embeds this model.
    """

    name: str = Field(min_length=1)
    seeds: list[str] = Field(min_length=1)
    options: BuildOptions | None = None

    @field_validator("seeds")
    @classmethod
    def _validate_seeds(cls, v: list[str]) -> list[str]:
        invalid = [s for s in v if parse_identity(s) is None]
        if invalid:
            raise ValueError(f"invalid seed identities: {', '.join(invalid)}")
        return v


class WarmerConfig(BaseServiceConfig):
    """Warmer service configuration.

    The default interval sits below the default graph TTL, so warmed
    entries are replaced before they expire.

    Attributes:
        interval: Seconds between warm cycles.
        groups: Seed groups to rebuild each cycle. An empty list warms the
            engine's default seeds.
        prune_cache: Drop expired ``events`` and ``profiles`` entries each
            cycle. Expired graphs are kept for the stale fallback.
    """

    interval: float = Field(default=240.0, ge=10.0, description="Seconds between warm cycles")
    groups: list[SeedGroup] = Field(default_factory=list)
    prune_cache: bool = True

    @field_validator("groups")
    @classmethod
    def _validate_unique_names(cls, v: list[SeedGroup]) -> list[SeedGroup]:
        names = [g.name for g in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate seed group names: {', '.join(duplicates)}")
        return v
