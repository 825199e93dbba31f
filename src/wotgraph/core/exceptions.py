"""WotGraph exception hierarchy.

Typed exceptions let callers separate "no relay answered" (worth a retry
later, or a stale cached graph) from programming and data errors, and let
``CancelledError`` propagate untouched.

Exception hierarchy:

```text
WotGraphError (base -- never raised directly)
├── ConfigurationError        -- config validation, bad YAML, bad CLI input
├── ConnectivityError         -- relay/network failures
│   ├── RelaysUnavailableError -- no relay reachable after every retry
│   └── RelayTimeoutError      -- one query exceeded its hard bound
├── DecodeError               -- malformed identity or record
└── GraphIntegrityError       -- assembled graph violates node/link invariants
```

Timeouts are normally converted into partial results inside
[EventFetcher][wotgraph.core.fetcher.EventFetcher]; of this hierarchy only
[RelaysUnavailableError][wotgraph.core.exceptions.RelaysUnavailableError]
is expected to reach callers of
[SocialGraph.get_graph()][wotgraph.graph.engine.SocialGraph.get_graph].
"""

from __future__ import annotations


class WotGraphError(Exception):
    """Base exception for all WotGraph errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(WotGraphError):
    """Invalid or missing configuration (YAML, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(WotGraphError):
    """Base for relay and network failures.

    Raised by the fetcher when a query fails for a reason other than its
    time budget running out. Graph construction treats it as a per-identity
    failure and degrades that branch.
    """


class RelaysUnavailableError(ConnectivityError):
    """No relay could be reached after the retry policy was exhausted.

    Attributes:
        attempts: Number of reconnect attempts made.
        relays: Relay URLs that were tried.
    """

    def __init__(self, message: str, *, attempts: int = 0, relays: list[str] | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.relays = list(relays or [])


class RelayTimeoutError(ConnectivityError):
    """A relay query exceeded its hard time bound."""


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


class DecodeError(WotGraphError, ValueError):
    """An identity or record could not be decoded.

    Subclasses ``ValueError`` so callers validating user input can catch
    either.
    """


class GraphIntegrityError(WotGraphError):
    """An assembled graph violated a structural invariant.

    Indicates a bug in graph assembly rather than bad relay data: relay data
    is filtered before it reaches the graph.
    """
