"""HTTP query service over the social graph engine via FastAPI.

Exposes graph construction, profile lookup, cache control and relay status.
When no relay is reachable, a graph request is answered from the cache,
even past its TTL, with ``meta.stale`` set; without a cached graph the
response is ``503`` with a ``Retry-After`` hint.

The HTTP server runs as a background ``asyncio.Task`` alongside the
standard ``run_forever()`` cycle. Each ``run()`` cycle logs request
statistics and updates Prometheus metrics.

With a ``warmer`` section configured, a
[Warmer][wotgraph.services.warmer.Warmer] runs as a second background
task on the same engine, so the graphs it rebuilds land in the cache the
request handlers read.

See Also:
    [SocialGraph][wotgraph.graph.engine.SocialGraph]: The engine behind
        every endpoint.
    [BaseService][wotgraph.core.base_service.BaseService]: Abstract
        base class providing lifecycle and metrics.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING, Annotated, Any, ClassVar

import uvicorn
from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wotgraph.core.base_service import BaseService
from wotgraph.core.exceptions import DecodeError, RelaysUnavailableError
from wotgraph.graph.configs import BuildOptions
from wotgraph.models.constants import CacheNamespace, ServiceName
from wotgraph.models.identity import Identity
from wotgraph.services.warmer import Warmer

from .configs import ApiConfig


if TYPE_CHECKING:
    from types import TracebackType

    from wotgraph.graph.engine import SocialGraph
    from wotgraph.models.graph import Graph

_HTTP_ERROR_THRESHOLD = 400


class Api(BaseService[ApiConfig]):
    """REST API service exposing the social graph engine.

    Lifecycle:
        1. ``__aenter__``: build FastAPI app, start uvicorn and, if
           configured, the embedded warmer.
        2. ``run()``: log statistics and update Prometheus gauges.
        3. ``__aexit__``: stop the warmer, cancel the HTTP server task.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.API
    CONFIG_CLASS: ClassVar[type[ApiConfig]] = ApiConfig

    def __init__(self, engine: SocialGraph, config: ApiConfig | None = None) -> None:
        super().__init__(engine, config)
        self._server_task: asyncio.Task[None] | None = None
        self._warmer_task: asyncio.Task[None] | None = None
        self._warmer = (
            Warmer(engine, self._config.warmer) if self._config.warmer is not None else None
        )
        self._requests_total = 0
        self._requests_failed = 0
        self._stale_served = 0

    @property
    def warmer(self) -> Warmer | None:
        """The embedded warmer, if configured."""
        return self._warmer

    async def __aenter__(self) -> Api:
        await super().__aenter__()

        app = self._build_app()
        self._server_task = asyncio.create_task(self._run_server(app))
        self._logger.info(
            "http_server_started",
            host=self._config.host,
            port=self._config.port,
            prefix=self._config.route_prefix,
        )

        if self._warmer is not None:
            await self._warmer.__aenter__()
            self._warmer_task = asyncio.create_task(self._warmer.run_forever())
            self._logger.info(
                "warmer_started",
                groups=len(self._warmer.groups()),
                interval=self._warmer.config.interval,
            )
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        if self._warmer is not None and self._warmer_task is not None:
            self._warmer.request_shutdown()
            self._warmer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._warmer_task
            self._warmer_task = None
            await self._warmer.__aexit__(_exc_type, _exc_val, _exc_tb)
        if self._server_task is not None:
            self._server_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._server_task
            self._server_task = None
        self._logger.info("http_server_stopped")
        await super().__aexit__(_exc_type, _exc_val, _exc_tb)

    async def run(self) -> None:
        """Log request stats and update Prometheus counters."""
        if self._server_task is not None and self._server_task.done():
            exc = self._server_task.exception() if not self._server_task.cancelled() else None
            self._logger.error("http_server_crashed", error=str(exc) if exc else "cancelled")
            raise RuntimeError("HTTP server task has stopped unexpectedly") from exc
        if self._warmer_task is not None and self._warmer_task.done():
            exc = self._warmer_task.exception() if not self._warmer_task.cancelled() else None
            self._logger.error("warmer_stopped", error=str(exc) if exc else "stopped")
            raise RuntimeError("warmer task has stopped unexpectedly") from exc

        # Snapshot and reset per-cycle counters
        total, failed, stale = self._requests_total, self._requests_failed, self._stale_served
        self._requests_total = 0
        self._requests_failed = 0
        self._stale_served = 0

        cached_graphs = self._engine.cache.size(CacheNamespace.GRAPHS)
        connected = len(self._engine.pool.connected_relays())
        self._logger.info(
            "cycle_stats",
            requests_total=total,
            requests_failed=failed,
            stale_served=stale,
            cached_graphs=cached_graphs,
            relays_connected=connected,
        )
        self.inc_counter("requests_total", total)
        self.inc_counter("requests_failed", failed)
        self.inc_counter("stale_graphs_served", stale)
        self.set_gauge("cached_graphs", cached_graphs)

    # -------------------------------------------------------------------------
    # Request Helpers
    # -------------------------------------------------------------------------

    def _build_options(
        self,
        second_degree: bool | None,
        followers: bool | None,
        max_connections: int | None,
    ) -> BuildOptions:
        """Engine defaults overridden by query parameters; ValueError if invalid."""
        values = self._engine.config.build.model_dump()
        if second_degree is not None:
            values["include_second_degree"] = second_degree
        if followers is not None:
            values["include_followers"] = followers
        if max_connections is not None:
            values["max_connections_per_node"] = max_connections
        return BuildOptions(**values)

    def _stale_response(
        self, seeds: list[str] | None, options: BuildOptions, error: RelaysUnavailableError
    ) -> JSONResponse:
        fallback = None
        if self._config.stale_fallback:
            fallback = self._engine.cached_graph(seeds, options)
        if fallback is None:
            return JSONResponse(
                {"error": str(error), "retry_after": self._config.retry_after},
                status_code=503,
                headers={"Retry-After": str(self._config.retry_after)},
            )
        graph, age = fallback
        self._stale_served += 1
        self._logger.warning("stale_graph_served", age_s=round(age, 1), nodes=len(graph.nodes))
        return self._graph_response(graph, options, stale=True, age=age)

    @staticmethod
    def _graph_response(
        graph: Graph, options: BuildOptions, *, stale: bool = False, age: float | None = None
    ) -> JSONResponse:
        meta: dict[str, Any] = {
            "stale": stale,
            "nodes": len(graph.nodes),
            "links": len(graph.links),
            "options": options.cache_tag(),
        }
        if age is not None:
            meta["age_s"] = round(age, 1)
        return JSONResponse({"data": graph.to_dict(), "meta": meta})

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------

    def _build_app(self) -> FastAPI:  # noqa: C901
        """Construct the FastAPI application."""
        app = FastAPI(title="WotGraph API")
        prefix = self._config.route_prefix

        if self._config.cors_origins:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self._config.cors_origins,
                allow_methods=["GET", "DELETE"],
                allow_headers=["*"],
            )

        # Request logging middleware
        @app.middleware("http")
        async def log_requests(request: Request, call_next: Any) -> Response:
            start = time.monotonic()
            self._logger.debug(
                "request_received",
                method=request.method,
                path=request.url.path,
                params=str(request.query_params),
            )
            try:
                response: Response = await call_next(request)
            except Exception as exc:  # HTTP request error boundary
                self._logger.error(
                    "unhandled_error",
                    error=str(exc),
                    path=request.url.path,
                )
                response = JSONResponse(
                    {"error": "Internal server error"},
                    status_code=500,
                )
            duration_ms = (time.monotonic() - start) * 1000
            self._requests_total += 1
            if response.status_code >= _HTTP_ERROR_THRESHOLD:
                self._requests_failed += 1
                self._logger.warning(
                    "request_failed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            else:
                self._logger.info(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(duration_ms, 1),
                )
            return response

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        @app.get(f"{prefix}/graph")
        async def get_graph(
            seed: Annotated[list[str] | None, Query()] = None,
            second_degree: bool | None = None,
            followers: bool | None = None,
            max_connections: int | None = None,
            refresh: bool = False,
        ) -> JSONResponse:
            if seed and len(seed) > self._config.max_seeds:
                return JSONResponse(
                    {"error": f"at most {self._config.max_seeds} seeds per request"},
                    status_code=400,
                )
            try:
                options = self._build_options(second_degree, followers, max_connections)
            except ValueError as e:
                return JSONResponse({"error": str(e)}, status_code=400)

            try:
                graph = await asyncio.wait_for(
                    self._engine.get_graph(seed or None, options, force_refresh=refresh),
                    timeout=self._config.request_timeout,
                )
            except TimeoutError:
                return JSONResponse({"error": "Graph build timeout"}, status_code=504)
            except RelaysUnavailableError as e:
                return self._stale_response(seed or None, options, e)
            except ValueError as e:
                return JSONResponse({"error": str(e)}, status_code=400)
            return self._graph_response(graph, options)

        @app.get(f"{prefix}/profile/{{identity}}")
        async def get_profile(identity: str) -> JSONResponse:
            try:
                profile = await asyncio.wait_for(
                    self._engine.get_profile(identity),
                    timeout=self._config.request_timeout,
                )
            except TimeoutError:
                return JSONResponse({"error": "Profile lookup timeout"}, status_code=504)
            except DecodeError as e:
                return JSONResponse({"error": str(e)}, status_code=400)

            parsed = Identity.parse(identity)
            return JSONResponse(
                {
                    "data": {
                        "pubkey": parsed.pubkey,
                        "npub": parsed.npub,
                        **profile.to_dict(),
                    }
                }
            )

        @app.delete(f"{prefix}/cache")
        async def clear_all_caches() -> JSONResponse:
            return JSONResponse({"data": {"cleared": self._engine.clear_caches()}})

        @app.delete(f"{prefix}/cache/{{namespace}}")
        async def clear_cache(namespace: str) -> JSONResponse:
            try:
                cleared = self._engine.clear_caches(namespace)
            except ValueError:
                return JSONResponse(
                    {"error": f"unknown cache namespace: {namespace}"},
                    status_code=404,
                )
            return JSONResponse({"data": {"cleared": cleared}})

        @app.get(f"{prefix}/relays")
        async def relays() -> JSONResponse:
            status = await self._engine.pool.refresh_status()
            connected = sum(1 for state in status.values() if state == "connected")
            return JSONResponse(
                {"data": status, "meta": {"connected": connected, "total": len(status)}}
            )

        return app

    async def _run_server(self, app: FastAPI) -> None:
        """Run uvicorn as an asyncio server."""
        config = uvicorn.Config(
            app,
            host=self._config.host,
            port=self._config.port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)
        await server.serve()
