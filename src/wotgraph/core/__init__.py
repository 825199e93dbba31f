"""Core layer: relay access, caching and service infrastructure.

Sits in the middle of the diamond DAG -- depends on ``wotgraph.models`` and
``wotgraph.utils``, and is depended upon by ``wotgraph.graph`` and
``wotgraph.services``.

Attributes:
    RelayPool: Shared relay client with retry and reconnect cooldown.
        See [RelayPool][wotgraph.core.pool.RelayPool].
    EventFetcher: Bounded-time queries returning parsed records.
        See [EventFetcher][wotgraph.core.fetcher.EventFetcher].
    KeyValueCache: Namespaced TTL cache with oldest-write eviction.
        See [KeyValueCache][wotgraph.core.cache.KeyValueCache].
    InFlightGuard: Collapses concurrent identical work by key.
        See [InFlightGuard][wotgraph.core.inflight.InFlightGuard].
    RetryPolicy: The one retry schedule used for reconnects.
        See [RetryPolicy][wotgraph.core.retry.RetryPolicy].
    BaseService: Lifecycle base class for long-running services.
        See [BaseService][wotgraph.core.base_service.BaseService].
    Logger: Structured logger with key=value and JSON modes.
        See [Logger][wotgraph.core.logger.Logger].
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .cache import CacheConfig, CacheEntry, KeyValueCache, NamespaceConfig, profile_cache_key
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    DecodeError,
    GraphIntegrityError,
    RelaysUnavailableError,
    RelayTimeoutError,
    WotGraphError,
)
from .fetcher import EventFetcher, FetcherConfig, collapse_replaceable
from .inflight import InFlightGuard
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .pool import DEFAULT_RELAYS, RelayPool, RelayPoolConfig
from .retry import RetryPolicy
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "DEFAULT_RELAYS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "BaseService",
    "BaseServiceConfig",
    "CacheConfig",
    "CacheEntry",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "DecodeError",
    "EventFetcher",
    "FetcherConfig",
    "GraphIntegrityError",
    "InFlightGuard",
    "KeyValueCache",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NamespaceConfig",
    "RelayPool",
    "RelayPoolConfig",
    "RelayTimeoutError",
    "RelaysUnavailableError",
    "RetryPolicy",
    "StructuredFormatter",
    "WotGraphError",
    "collapse_replaceable",
    "format_kv_pairs",
    "load_yaml",
    "profile_cache_key",
    "start_metrics_server",
]
