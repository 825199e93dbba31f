"""API service configuration models.

See Also:
    [Api][wotgraph.services.api.Api]: The service class that consumes
        these configurations.
    [WarmerConfig][wotgraph.services.warmer.WarmerConfig]: Embedded
        warmer settings.
    [BaseServiceConfig][wotgraph.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from wotgraph.core.base_service import BaseServiceConfig
from wotgraph.services.warmer.configs import WarmerConfig  # noqa: TC001 (Pydantic runtime)


class ApiConfig(BaseServiceConfig):
    """Configuration for the API service.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port for the HTTP server.
        route_prefix: URL prefix for versioned routes (e.g. ``/v1``).
        cors_origins: Allowed CORS origins. Empty list disables CORS.
        request_timeout: Seconds a request may wait for a graph build.
        stale_fallback: Serve an expired cached graph, flagged stale, when
            no relay is reachable.
        max_seeds: Ceiling on ``seed`` parameters per graph request.
        retry_after: ``Retry-After`` seconds sent with 503 responses.
        warmer: Keep seed groups warm from inside this process, sharing the
            engine and its caches with the request handlers. ``None``
            disables warming.
    """

    host: str = Field(default="0.0.0.0", min_length=1, description="HTTP bind address")  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")
    route_prefix: str = Field(default="/v1", min_length=1)
    cors_origins: list[str] = Field(default_factory=list)
    request_timeout: float = Field(default=60.0, ge=1.0, le=600.0)
    stale_fallback: bool = True
    max_seeds: int = Field(default=20, ge=1, le=200)
    retry_after: int = Field(default=30, ge=1, le=3600)
    warmer: WarmerConfig | None = None

    @field_validator("route_prefix")
    @classmethod
    def _normalize_route_prefix(cls, v: str) -> str:
        v = v.strip("/")
        if not v:
            msg = "route_prefix must not be empty"
            raise ValueError(msg)
        return f"/{v}"
