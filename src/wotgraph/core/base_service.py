"""
Abstract base class for long-running WotGraph services.

``BaseService[ConfigT]`` provides the lifecycle every service shares:
structured logging via [Logger][wotgraph.core.logger.Logger], graceful
shutdown via ``asyncio.Event``, interval-based cycling with
[run_forever()][wotgraph.core.base_service.BaseService.run_forever],
a consecutive failure limit, and Prometheus metrics.

Services receive the [SocialGraph][wotgraph.graph.engine.SocialGraph] engine
in their constructor; the engine owns the relay pool and the cache, so
every service hosted in one process shares them.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from wotgraph.models.constants import ServiceName

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


if TYPE_CHECKING:
    from types import TracebackType

    from wotgraph.graph.engine import SocialGraph


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class BaseServiceConfig(BaseModel):
    """Configuration shared by all services that run in a loop.

    Subclass to add service-specific fields.
    """

    interval: float = Field(
        default=300.0,
        ge=10.0,
        description="Seconds between run cycles",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Stop after this many consecutive errors (0 = unlimited)",
    )
    metrics: MetricsConfig = Field(
        default_factory=MetricsConfig,
        description="Prometheus metrics configuration",
    )


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Abstract base class for all WotGraph services.

    Subclasses set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][wotgraph.core.base_service.BaseService.run].

    Attributes:
        SERVICE_NAME: Identifier used in logging and metrics labels.
        CONFIG_CLASS: Pydantic model used by the factory methods.
        _engine: Shared [SocialGraph][wotgraph.graph.engine.SocialGraph].
        _config: Typed service configuration.
        _logger: [Logger][wotgraph.core.logger.Logger] named after the service.
        _shutdown_event: Set once shutdown has been requested.

    Note:
        The lifecycle is ``async with engine:`` then ``async with service:``
        then [run_forever()][wotgraph.core.base_service.BaseService.run_forever],
        or a single [run()][wotgraph.core.base_service.BaseService.run]
        with ``--once``.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, engine: SocialGraph, config: ConfigT | None = None) -> None:
        self._engine = engine
        self._config: ConfigT = (
            config if config is not None else cast("ConfigT", self.CONFIG_CLASS())
        )
        self._logger = Logger(self.SERVICE_NAME)
        self._shutdown_event = asyncio.Event()

    @property
    def config(self) -> ConfigT:
        """The typed service configuration (read-only)."""
        return self._config

    @property
    def engine(self) -> SocialGraph:
        return self._engine

    @abstractmethod
    async def run(self) -> None:
        """Execute one bounded cycle of the service's work."""
        ...

    def request_shutdown(self) -> None:
        """Request a graceful shutdown; safe to call from signal handlers."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Whether shutdown has not been requested yet."""
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Sleep up to ``timeout`` seconds; return True if shutdown interrupted it."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except TimeoutError:
            return False

    async def run_forever(self) -> None:
        """Call [run()][wotgraph.core.base_service.BaseService.run] every ``interval`` seconds.

        Exits when shutdown is requested or after
        ``max_consecutive_failures`` failed cycles in a row (``0`` disables
        the limit). Records ``cycles_success``, ``cycles_failed``,
        ``errors_{ExceptionType}``, ``consecutive_failures``,
        ``last_cycle_timestamp`` and ``cycle_duration_seconds``.

        ``CancelledError``, ``KeyboardInterrupt`` and ``SystemExit`` propagate
        immediately and are not counted as failures.
        """
        interval = self._config.interval
        max_consecutive_failures = self._config.max_consecutive_failures
        metrics_enabled = self._config.metrics.enabled

        if metrics_enabled:
            SERVICE_INFO.info({"service": self.SERVICE_NAME})

        self._logger.info(
            "run_forever_started",
            interval=interval,
            max_consecutive_failures=max_consecutive_failures,
        )

        consecutive_failures = 0

        while self.is_running:
            cycle_start = time.monotonic()

            try:
                await self.run()

                duration = time.monotonic() - cycle_start
                self.inc_counter("cycles_success")
                if metrics_enabled:
                    CYCLE_DURATION_SECONDS.labels(service=self.SERVICE_NAME).observe(duration)
                self.set_gauge("last_cycle_timestamp", time.time())
                self.set_gauge("consecutive_failures", 0)

                consecutive_failures = 0
                self._logger.info("cycle_completed", next_cycle_s=interval)

            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                raise

            except Exception as e:  # Intentionally broad: top-level error boundary for run_forever
                consecutive_failures += 1

                self.inc_counter("cycles_failed")
                self.set_gauge("consecutive_failures", consecutive_failures)
                self.inc_counter(f"errors_{type(e).__name__}")

                self._logger.error(
                    "run_cycle_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    consecutive_failures=consecutive_failures,
                )

                if 0 < max_consecutive_failures <= consecutive_failures:
                    self._logger.critical(
                        "max_consecutive_failures_reached",
                        failures=consecutive_failures,
                        limit=max_consecutive_failures,
                    )
                    break

            if await self.wait(interval):
                break

        self._logger.info("run_forever_stopped")

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str, engine: SocialGraph, **kwargs: Any) -> Self:
        """Create a service from a YAML configuration file."""
        return cls.from_dict(load_yaml(config_path), engine=engine, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], engine: SocialGraph, **kwargs: Any) -> Self:
        """Create a service from a configuration mapping parsed into ``CONFIG_CLASS``."""
        config = cast("ConfigT", cls.CONFIG_CLASS(**data))
        return cls(engine=engine, config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        self._shutdown_event.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Custom Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set ``SERVICE_GAUGE{service, name}``; no-op when metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment ``SERVICE_COUNTER{service, name}``; no-op when metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)
