"""
Relay connection pool with retry and reconnect cooldown.

[RelayPool][wotgraph.core.pool.RelayPool] owns the single ``nostr_sdk.Client``
used for every query, tracks per-relay connection state, and implements the
two entry points the rest of the engine relies on:

* [reconnect()][wotgraph.core.pool.RelayPool.reconnect] -- one connection
  attempt across all configured relays. Never raises; reports whether at
  least one relay is reachable. Rate-limited by a cooldown so bursts of
  callers do not hammer relays.
* [ensure_connected()][wotgraph.core.pool.RelayPool.ensure_connected] -- the
  gate every graph build passes first. Retries according to the shared
  [RetryPolicy][wotgraph.core.retry.RetryPolicy] and raises
  [RelaysUnavailableError][wotgraph.core.exceptions.RelaysUnavailableError]
  when the policy is exhausted.

Examples:
    ```python
    pool = RelayPool(RelayPoolConfig(relays=["wss://relay.damus.io", "wss://nos.lol"]))
    async with pool:
        await pool.ensure_connected()
        events = await pool.client.fetch_events(f, timedelta(seconds=8))
    ```
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Self

from nostr_sdk import RelayUrl
from pydantic import BaseModel, Field, field_validator

from wotgraph.models.constants import RelayState
from wotgraph.models.relay import Relay
from wotgraph.utils.protocol import create_client, shutdown_client

from .exceptions import RelaysUnavailableError
from .logger import Logger
from .metrics import RELAYS_CONNECTED
from .retry import RetryPolicy
from .yaml import load_yaml


if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from nostr_sdk import Client


DEFAULT_RELAYS: tuple[str, ...] = (
    "wss://relay.damus.io",
    "wss://relay.primal.net",
    "wss://nos.lol",
    "wss://nostr.wine",
    "wss://relay.snort.social",
)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RelayPoolConfig(BaseModel):
    """Relay set and connection behaviour.

    Attributes:
        relays: Relay URLs; normalized and de-duplicated on validation.
        connect_timeout: Seconds each connection attempt may take.
        reconnect_cooldown: Minimum seconds between two non-forced
            reconnect attempts.
        retry: Policy consulted by
            [ensure_connected()][wotgraph.core.pool.RelayPool.ensure_connected].
    """

    relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS), min_length=1)
    connect_timeout: float = Field(default=10.0, gt=0.0, le=120.0)
    reconnect_cooldown: float = Field(default=5.0, ge=0.0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("relays")
    @classmethod
    def normalize_relays(cls, v: list[str]) -> list[str]:
        normalized: dict[str, None] = {}
        for raw in v:
            normalized.setdefault(Relay(raw).url, None)
        return list(normalized)


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class RelayPool:
    """Shared relay connection state for one engine instance.

    Args:
        config: Relay set and timing; defaults to
            [RelayPoolConfig][wotgraph.core.pool.RelayPoolConfig] defaults.
        client_factory: Zero-argument callable returning a fresh
            ``nostr_sdk.Client``; tests substitute a mock.
    """

    def __init__(
        self,
        config: RelayPoolConfig | None = None,
        *,
        client_factory: Callable[[], Client] = create_client,
    ) -> None:
        self._config = config or RelayPoolConfig()
        self._client_factory = client_factory
        self._client: Client | None = None
        self._status: dict[str, RelayState] = dict.fromkeys(
            self._config.relays, RelayState.DISCONNECTED
        )
        self._last_attempt: float | None = None
        self._lock = asyncio.Lock()
        self._logger = Logger("relay_pool")

    @classmethod
    def from_yaml(cls, config_path: str) -> Self:
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(RelayPoolConfig(**data))

    @property
    def config(self) -> RelayPoolConfig:
        return self._config

    @property
    def retry(self) -> RetryPolicy:
        return self._config.retry

    @property
    def client(self) -> Client:
        """The shared client.

        Raises:
            RelaysUnavailableError: If the pool was never connected.
        """
        if self._client is None:
            raise RelaysUnavailableError(
                "relay pool is not connected", relays=list(self._config.relays)
            )
        return self._client

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def relay_status(self) -> dict[str, str]:
        """Last known state of each configured relay."""
        return {url: state.value for url, state in self._status.items()}

    def connected_relays(self) -> list[str]:
        """URLs whose last known state is connected."""
        return [url for url, state in self._status.items() if state is RelayState.CONNECTED]

    async def refresh_status(self) -> dict[str, str]:
        """Ask the client for the live state of every relay and record it."""
        if self._client is None:
            return self.relay_status()

        for url in self._config.relays:
            try:
                relay = await self._client.relay(RelayUrl.parse(url))
                connected = relay.is_connected()
            except Exception as e:  # nostr-sdk FFI raises its own error type for unknown relays
                self._logger.debug("relay_status_failed", relay=url, error=str(e))
                connected = False
            if connected:
                self._status[url] = RelayState.CONNECTED
            elif self._status[url] is RelayState.CONNECTED:
                self._status[url] = RelayState.DISCONNECTED

        RELAYS_CONNECTED.set(len(self.connected_relays()))
        return self.relay_status()

    async def connected_count(self) -> int:
        """Number of relays currently connected."""
        await self.refresh_status()
        return len(self.connected_relays())

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> bool:
        """Create the client if needed and attempt to connect every relay.

        Returns:
            Whether at least one relay is connected.
        """
        return await self.reconnect(force=True)

    async def reconnect(self, *, force: bool = False) -> bool:
        """Attempt to (re)connect the configured relays. Never raises.

        Without ``force``, an attempt made within ``reconnect_cooldown``
        seconds of the previous one is skipped and only the current state is
        reported.

        Returns:
            Whether at least one relay is connected afterwards.
        """
        async with self._lock:
            now = time.monotonic()
            if (
                not force
                and self._last_attempt is not None
                and now - self._last_attempt < self._config.reconnect_cooldown
            ):
                self._logger.debug("reconnect_skipped", reason="cooldown")
                return bool(self.connected_relays())
            self._last_attempt = now

            try:
                return await self._attempt_connect()
            except Exception as e:  # Intentionally broad: reconnect must never raise
                self._logger.warning("reconnect_failed", error=str(e))
                for url, state in self._status.items():
                    if state is not RelayState.CONNECTED:
                        self._status[url] = RelayState.ERROR
                return bool(self.connected_relays())

    async def _attempt_connect(self) -> bool:
        if self._client is None:
            self._client = self._client_factory()
            for url in self._config.relays:
                await self._client.add_relay(RelayUrl.parse(url))

        for url, state in self._status.items():
            if state is not RelayState.CONNECTED:
                self._status[url] = RelayState.CONNECTING

        self._logger.info("connection_starting", relays=len(self._config.relays))
        output = await self._client.try_connect(
            timedelta(seconds=self._config.connect_timeout)
        )

        await self.refresh_status()
        for url, state in self._status.items():
            if state is RelayState.CONNECTING:
                self._status[url] = RelayState.ERROR

        connected = self.connected_relays()
        failed = getattr(output, "failed", None) or {}
        for relay_url, error in failed.items():
            self._logger.debug("relay_connect_failed", relay=str(relay_url), error=str(error))

        if connected:
            self._logger.info(
                "connection_established",
                connected=len(connected),
                total=len(self._config.relays),
            )
        else:
            self._logger.warning("connection_failed", total=len(self._config.relays))
        return bool(connected)

    async def ensure_connected(self) -> None:
        """Guarantee at least one connected relay or raise.

        Each attempt first checks the live state, then forces a reconnect.
        Between failed attempts it waits
        [RetryPolicy.delay_for()][wotgraph.core.retry.RetryPolicy.delay_for].

        Raises:
            RelaysUnavailableError: If no relay is reachable after
                ``retry.max_attempts`` attempts.
        """
        policy = self._config.retry
        for attempt in range(policy.max_attempts):
            if self._client is not None and await self.connected_count() > 0:
                return
            if await self.reconnect(force=True):
                return
            if policy.is_last(attempt):
                break
            delay = policy.delay_for(attempt)
            self._logger.warning(
                "connection_retry",
                attempt=attempt + 1,
                max_attempts=policy.max_attempts,
                delay_s=delay,
            )
            await asyncio.sleep(delay)

        self._logger.error("relays_unavailable", attempts=policy.max_attempts)
        raise RelaysUnavailableError(
            f"no relay reachable after {policy.max_attempts} attempts",
            attempts=policy.max_attempts,
            relays=list(self._config.relays),
        )

    async def close(self) -> None:
        """Shut the client down and mark every relay disconnected. Idempotent."""
        if self._client is not None:
            await shutdown_client(self._client)
            self._client = None
            self._logger.info("connection_closed")
        self._status = dict.fromkeys(self._config.relays, RelayState.DISCONNECTED)
        RELAYS_CONNECTED.set(0)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
