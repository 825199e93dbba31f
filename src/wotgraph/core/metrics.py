"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are process-wide singletons. Two groups exist:

* Service metrics, recorded by
  [BaseService.run_forever()][wotgraph.core.base_service.BaseService.run_forever]
  and by services through ``set_gauge()`` / ``inc_counter()``.
* Engine metrics, recorded by the cache and the graph engine on every call
  regardless of which service (if any) hosts them.

[MetricsServer][wotgraph.core.metrics.MetricsServer] exposes ``/metrics`` over
aiohttp for scraping.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint only starts when ``enabled`` is True. Bind ``host`` to
    ``"0.0.0.0"`` inside containers.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Service Metrics
# ---------------------------------------------------------------------------

SERVICE_INFO = Info(
    "service",
    "Service information and metadata",
)

CYCLE_DURATION_SECONDS = Histogram(
    "cycle_duration_seconds",
    "Duration of service cycle in seconds",
    ["service"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
)

# gauge:   consecutive_failures, last_cycle_timestamp, graph_nodes, ...
# counter: cycles_success, cycles_failed, errors_{type}, requests_total, ...
SERVICE_GAUGE = Gauge(
    "service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


# ---------------------------------------------------------------------------
# Engine Metrics
# ---------------------------------------------------------------------------

# outcome: complete | partial | failed | unavailable
GRAPH_BUILDS_TOTAL = Counter(
    "graph_builds_total",
    "Graph builds by outcome",
    ["outcome"],
)

GRAPH_BUILD_DURATION_SECONDS = Histogram(
    "graph_build_duration_seconds",
    "Wall time of completed graph builds",
    buckets=(0.5, 1, 2, 5, 10, 20, 30, 60, 120),
)

# result: hit | miss | expired
CACHE_REQUESTS_TOTAL = Counter(
    "cache_requests_total",
    "Cache lookups by namespace and result",
    ["namespace", "result"],
)

CACHE_EVICTIONS_TOTAL = Counter(
    "cache_evictions_total",
    "Entries evicted to stay under a namespace ceiling",
    ["namespace"],
)

RELAYS_CONNECTED = Gauge(
    "relays_connected",
    "Relays currently connected",
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... service runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the endpoint; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled or self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._config.host, self._config.port)
        await site.start()
        self._runner = runner

    async def stop(self) -> None:
        """Release the port. Idempotent."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a [MetricsServer][wotgraph.core.metrics.MetricsServer].

    The caller owns the returned server and must ``stop()`` it on shutdown.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
