"""Unit tests for services.api.service module.

Tests:
- Api service initialization
- FastAPI endpoints via TestClient against an engine with scripted relays
- Stale fallback and 503 responses when relays are unreachable
- Run cycle metrics and server task monitoring
- Embedded warmer sharing the engine with request handlers
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from tests.conftest import FakeClock, ScriptedFetcher, make_identities
from wotgraph.core.cache import KeyValueCache
from wotgraph.core.exceptions import RelaysUnavailableError
from wotgraph.graph import SocialGraph, SocialGraphConfig
from wotgraph.models.constants import CacheNamespace, ServiceName
from wotgraph.services.api import Api, ApiConfig
from wotgraph.services.warmer import Warmer


@pytest.fixture
def engine(pool: MagicMock, cache: KeyValueCache, fetcher: ScriptedFetcher) -> SocialGraph:
    return SocialGraph(SocialGraphConfig(), pool=pool, cache=cache, fetcher=fetcher)  # type: ignore[arg-type]


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig(interval=60.0, host="127.0.0.1", port=9999, max_seeds=3, retry_after=15)


@pytest.fixture
def api_service(engine: SocialGraph, api_config: ApiConfig) -> Api:
    return Api(engine=engine, config=api_config)


@pytest.fixture
def test_client(api_service: Api) -> TestClient:
    return TestClient(api_service._build_app())


# ============================================================================
# Api Service Tests
# ============================================================================


class TestApi:
    """Tests for Api service class."""

    def test_service_name(self) -> None:
        assert Api.SERVICE_NAME == ServiceName.API

    def test_init(self, api_service: Api) -> None:
        assert api_service._requests_total == 0
        assert api_service._requests_failed == 0
        assert api_service._stale_served == 0
        assert api_service._server_task is None


# ============================================================================
# Graph Endpoint
# ============================================================================


class TestGraphEndpoint:
    """GET /v1/graph."""

    def test_builds_graph(self, test_client: TestClient, fetcher: ScriptedFetcher) -> None:
        a, b = make_identities(2)
        fetcher.follows(a, [b])

        response = test_client.get("/v1/graph", params={"seed": [a.npub]})

        assert response.status_code == 200
        body = response.json()
        assert {n["id"] for n in body["data"]["nodes"]} == {a.node_id, b.node_id}
        assert body["data"]["links"][0]["type"] == "follows"
        assert body["meta"] == {
            "stale": False,
            "nodes": 2,
            "links": 1,
            "options": "basic-c25-a7x200",
        }

    def test_options_from_query(self, test_client: TestClient, fetcher: ScriptedFetcher) -> None:
        a, *contacts = make_identities(5)
        fetcher.follows(a, contacts)

        response = test_client.get(
            "/v1/graph",
            params={"seed": a.npub, "second_degree": "true", "max_connections": 2},
        )

        assert response.status_code == 200
        assert response.json()["meta"]["options"] == "extended-c2-s10x50-a7x200"
        assert response.json()["meta"]["nodes"] == 3

    def test_too_many_seeds(self, test_client: TestClient) -> None:
        seeds = [i.npub for i in make_identities(4)]
        response = test_client.get("/v1/graph", params={"seed": seeds})
        assert response.status_code == 400
        assert "at most 3" in response.json()["error"]

    def test_invalid_option(self, test_client: TestClient) -> None:
        (a,) = make_identities(1)
        response = test_client.get("/v1/graph", params={"seed": a.npub, "max_connections": 0})
        assert response.status_code == 400

    def test_no_seeds(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/graph")
        assert response.status_code == 400
        assert "seed" in response.json()["error"]

    def test_timeout(self, test_client: TestClient, engine: SocialGraph) -> None:
        (a,) = make_identities(1)
        with patch.object(engine, "get_graph", AsyncMock(side_effect=TimeoutError)):
            response = test_client.get("/v1/graph", params={"seed": a.npub})
        assert response.status_code == 504

    def test_unavailable_without_cache(self, test_client: TestClient, pool: MagicMock) -> None:
        (a,) = make_identities(1)
        pool.ensure_connected.side_effect = RelaysUnavailableError("down", attempts=3)

        response = test_client.get("/v1/graph", params={"seed": a.npub})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "15"
        assert response.json()["retry_after"] == 15

    def test_unavailable_serves_stale_graph(
        self,
        test_client: TestClient,
        api_service: Api,
        pool: MagicMock,
        clock: FakeClock,
    ) -> None:
        (a,) = make_identities(1)
        assert test_client.get("/v1/graph", params={"seed": a.npub}).status_code == 200
        clock.advance(1000)
        pool.ensure_connected.side_effect = RelaysUnavailableError("down")

        response = test_client.get("/v1/graph", params={"seed": a.npub})

        assert response.status_code == 200
        meta = response.json()["meta"]
        assert meta["stale"] is True
        assert meta["age_s"] == 1000.0
        assert api_service._stale_served == 1

    def test_stale_fallback_disabled(
        self, engine: SocialGraph, pool: MagicMock, clock: FakeClock
    ) -> None:
        api = Api(engine=engine, config=ApiConfig(stale_fallback=False))
        client = TestClient(api._build_app())
        (a,) = make_identities(1)
        client.get("/v1/graph", params={"seed": a.npub})
        clock.advance(1000)
        pool.ensure_connected.side_effect = RelaysUnavailableError("down")

        assert client.get("/v1/graph", params={"seed": a.npub}).status_code == 503


# ============================================================================
# Other Endpoints
# ============================================================================


class TestOtherEndpoints:
    """Health, profile, cache and relay endpoints."""

    def test_health(self, test_client: TestClient) -> None:
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_profile(self, test_client: TestClient, fetcher: ScriptedFetcher) -> None:
        (a,) = make_identities(1)
        fetcher.profile(a, name="alice", about="hi")

        response = test_client.get(f"/v1/profile/{a.pubkey}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pubkey"] == a.pubkey
        assert data["npub"] == a.npub
        assert data["name"] == "alice"
        assert data["placeholder"] is False

    def test_profile_placeholder(self, test_client: TestClient) -> None:
        (a,) = make_identities(1)
        data = test_client.get(f"/v1/profile/{a.npub}").json()["data"]
        assert data["placeholder"] is True
        assert data["display_name"] == a.short()

    def test_profile_malformed(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/profile/npub1broken")
        assert response.status_code == 400

    def test_clear_all_caches(self, test_client: TestClient, cache: KeyValueCache) -> None:
        cache.set(CacheNamespace.PROFILES, "k", 1)
        response = test_client.delete("/v1/cache")
        assert response.status_code == 200
        assert response.json() == {"data": {"cleared": ["events", "profiles", "graphs"]}}
        assert cache.size(CacheNamespace.PROFILES) == 0

    def test_clear_one_cache(self, test_client: TestClient, cache: KeyValueCache) -> None:
        cache.set(CacheNamespace.PROFILES, "k", 1)
        cache.set(CacheNamespace.GRAPHS, "k", 1)
        response = test_client.delete("/v1/cache/graphs")
        assert response.json() == {"data": {"cleared": ["graphs"]}}
        assert cache.size(CacheNamespace.PROFILES) == 1

    def test_clear_unknown_cache(self, test_client: TestClient) -> None:
        response = test_client.delete("/v1/cache/sessions")
        assert response.status_code == 404

    def test_relays(self, test_client: TestClient, pool: MagicMock) -> None:
        pool.refresh_status.return_value = {
            "wss://a.example.com": "connected",
            "wss://b.example.com": "error",
        }
        response = test_client.get("/v1/relays")
        assert response.status_code == 200
        assert response.json()["meta"] == {"connected": 1, "total": 2}

    def test_custom_prefix(self, engine: SocialGraph) -> None:
        api = Api(engine=engine, config=ApiConfig(route_prefix="api"))
        client = TestClient(api._build_app())
        assert client.delete("/api/cache").status_code == 200
        assert client.delete("/v1/cache").status_code == 404


class TestFallbackHandler:
    """Request accounting and the error boundary."""

    def test_counts_requests(self, test_client: TestClient, api_service: Api) -> None:
        test_client.get("/health")
        test_client.get("/v1/profile/garbage")
        assert api_service._requests_total == 2
        assert api_service._requests_failed == 1

    def test_unhandled_exception_returns_json_500(
        self, test_client: TestClient, engine: SocialGraph, api_service: Api
    ) -> None:
        with patch.object(engine, "clear_caches", side_effect=RuntimeError("boom")):
            response = test_client.delete("/v1/cache")
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert api_service._requests_failed == 1


# ============================================================================
# Run Cycle
# ============================================================================


class TestApiRun:
    """Api.run() statistics and server monitoring."""

    async def test_run_resets_counters(self, api_service: Api) -> None:
        api_service._requests_total = 5
        api_service._requests_failed = 2
        api_service._stale_served = 1
        await api_service.run()
        assert api_service._requests_total == 0
        assert api_service._requests_failed == 0
        assert api_service._stale_served == 0

    async def test_run_reports_metrics(self, engine: SocialGraph, cache: KeyValueCache) -> None:
        api = Api(engine=engine, config=ApiConfig(metrics={"enabled": True}))
        cache.set(CacheNamespace.GRAPHS, "g", 1)
        with patch.object(api, "set_gauge") as set_gauge, patch.object(api, "inc_counter"):
            await api.run()
        set_gauge.assert_called_once_with("cached_graphs", 1)

    async def test_run_detects_crashed_server_task(self, api_service: Api) -> None:
        async def crash() -> None:
            raise OSError("address in use")

        api_service._server_task = asyncio.create_task(crash())
        await asyncio.sleep(0)
        with pytest.raises(RuntimeError, match="stopped unexpectedly"):
            await api_service.run()

    async def test_lifecycle_starts_and_stops_server(self, api_service: Api) -> None:
        started = asyncio.Event()

        async def serve(_app: object) -> None:
            started.set()
            await asyncio.Event().wait()

        with patch.object(api_service, "_run_server", serve):
            async with api_service:
                await started.wait()
                assert api_service._server_task is not None
                await api_service.run()
        assert api_service._server_task is None


# ============================================================================
# Embedded Warmer
# ============================================================================


class TestEmbeddedWarmer:
    """Warmer running inside the Api process on the shared engine."""

    def test_disabled_by_default(self, api_service: Api) -> None:
        assert api_service.warmer is None

    async def test_warmed_graph_served_without_rebuild(
        self, engine: SocialGraph, fetcher: ScriptedFetcher
    ) -> None:
        a, b = make_identities(2)
        fetcher.follows(a, [b])
        api = Api(
            engine=engine,
            config=ApiConfig(warmer={"groups": [{"name": "team", "seeds": [a.npub]}]}),
        )
        assert api.warmer is not None
        assert api.warmer.engine is engine

        await api.warmer.run()
        assert fetcher.contact_calls == [a.pubkey]

        response = TestClient(api._build_app()).get("/v1/graph", params={"seed": [a.npub]})

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["stale"] is False
        assert {n["id"] for n in body["data"]["nodes"]} == {a.node_id, b.node_id}
        assert fetcher.contact_calls == [a.pubkey]

    async def test_lifecycle_starts_and_stops_warmer(self, engine: SocialGraph) -> None:
        (a,) = make_identities(1)
        api = Api(
            engine=engine,
            config=ApiConfig(warmer={"groups": [{"name": "team", "seeds": [a.npub]}]}),
        )
        warmed = asyncio.Event()

        async def serve(_app: object) -> None:
            await asyncio.Event().wait()

        with (
            patch.object(api, "_run_server", serve),
            patch.object(Warmer, "run", AsyncMock(side_effect=warmed.set)),
        ):
            async with api:
                await asyncio.wait_for(warmed.wait(), 5)
                assert api.warmer is not None and api.warmer.is_running
                await api.run()

        assert api._warmer_task is None
        assert api.warmer is not None and not api.warmer.is_running

    async def test_run_detects_stopped_warmer(self, engine: SocialGraph) -> None:
        api = Api(engine=engine, config=ApiConfig(warmer={}))

        async def stop() -> None:
            raise RuntimeError("boom")

        api._warmer_task = asyncio.create_task(stop())
        await asyncio.sleep(0)
        with pytest.raises(RuntimeError, match="warmer task has stopped"):
            await api.run()
