"""Warmer service for WotGraph.

Rebuilds each configured seed group with ``force_refresh=True`` every
cycle, so requests for those groups are served from a fresh ``graphs``
cache entry instead of waiting on relays. A group that fails (no reachable
relay, integrity error) is logged and counted; the other groups still run.

The cache lives in process memory, so the warmer only helps requests served
from the same engine. It normally runs inside the
[Api][wotgraph.services.api.Api] service, configured through its ``warmer``
section. Expired ``graphs`` entries are never pruned here: they are the
stale fallback served while relays are unreachable.

See Also:
    [WarmerConfig][wotgraph.services.warmer.WarmerConfig]: Configuration
        model for seed groups and pruning.
    [SocialGraph.get_graph()][wotgraph.graph.engine.SocialGraph.get_graph]:
        The call made for every group.

Examples:
    ```python
    from wotgraph.graph import SocialGraph
    from wotgraph.services.warmer import Warmer, WarmerConfig

    engine = SocialGraph.from_yaml("config/wotgraph.yaml")
    warmer = Warmer(engine, WarmerConfig(interval=120))

    async with engine, warmer:
        await warmer.run()
        graph = await engine.get_graph()  # served from the warmed entry
    ```
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, ClassVar

from wotgraph.core.base_service import BaseService
from wotgraph.core.exceptions import WotGraphError
from wotgraph.models.constants import CacheNamespace, ServiceName

from .configs import SeedGroup, WarmerConfig


if TYPE_CHECKING:
    from wotgraph.graph.engine import SocialGraph


class Warmer(BaseService[WarmerConfig]):
    """Periodic graph cache warmer.

    See Also:
        [Api][wotgraph.services.api.Api]: The service whose graph requests
            benefit from the warmed entries.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.WARMER
    CONFIG_CLASS: ClassVar[type[WarmerConfig]] = WarmerConfig

    def __init__(self, engine: SocialGraph, config: WarmerConfig | None = None) -> None:
        super().__init__(engine, config)
        self._last_results: dict[str, bool] = {}

    @property
    def last_results(self) -> dict[str, bool]:
        """Outcome per group name of the most recent cycle."""
        return dict(self._last_results)

    def groups(self) -> list[SeedGroup]:
        """Configured groups, or the engine's default seeds as one group."""
        if self._config.groups:
            return list(self._config.groups)
        if self._engine.config.seeds:
            return [SeedGroup(name="default", seeds=list(self._engine.config.seeds))]
        return []

    async def run(self) -> None:
        """Rebuild every seed group once, then prune expired events and profiles."""
        groups = self.groups()
        if not groups:
            self._logger.warning("no_seed_groups")
            return

        results: dict[str, bool] = {}
        for group in groups:
            if not self.is_running:
                break
            results[group.name] = await self._warm(group)
        self._last_results = results

        pruned = 0
        if self._config.prune_cache:
            cache = self._engine.cache
            pruned = cache.prune(CacheNamespace.EVENTS) + cache.prune(CacheNamespace.PROFILES)
        warmed = sum(results.values())
        failed = len(results) - warmed

        self._logger.info("warm_completed", warmed=warmed, failed=failed, pruned=pruned)
        self.set_gauge("groups_warmed", warmed)
        self.set_gauge("groups_failed", failed)
        self.inc_counter("cache_entries_pruned", pruned)

    async def _warm(self, group: SeedGroup) -> bool:
        start = time.monotonic()
        try:
            graph = await self._engine.get_graph(group.seeds, group.options, force_refresh=True)
        except (WotGraphError, ValueError) as e:
            self._logger.warning(
                "group_warm_failed",
                group=group.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        self._logger.info(
            "group_warmed",
            group=group.name,
            nodes=len(graph.nodes),
            links=len(graph.links),
            duration_s=round(time.monotonic() - start, 3),
        )
        return True
