"""Shared constants for the models layer.

Defines enumerations used across model modules, the graph engine, and the
services. Placing them here avoids circular dependencies between the
models and the layers built on top of them.

See Also:
    [wotgraph.models.record][]: Uses [EventKind][wotgraph.models.constants.EventKind]
        to pick the record variant for a relay event.
    [wotgraph.graph.builder][]: Walks the [BuildState][wotgraph.models.constants.BuildState]
        machine while assembling a graph.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class ServiceName(StrEnum):
    """Canonical service identifiers used in logging and metrics.

    Attributes:
        API: HTTP query surface ([Api][wotgraph.services.api.Api]).
        WARMER: Periodic graph rebuild service
            ([Warmer][wotgraph.services.warmer.Warmer]).
    """

    API = "api"
    WARMER = "warmer"


class EventKind(IntEnum):
    """Well-known Nostr event kinds consumed by the engine.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note (NIP-01).
        CONTACTS: Kind 3 -- contact list, one ``p`` tag per followed key (NIP-02).
        REPOST: Kind 6 -- repost (NIP-18).
        REACTION: Kind 7 -- reaction (NIP-25).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3
    REPOST = 6
    REACTION = 7


EVENT_KIND_MAX = 65_535

# Events whose author interacted with a tagged identity; used as an activity signal
INTERACTION_KINDS = (EventKind.TEXT_NOTE, EventKind.REPOST, EventKind.REACTION)

# NIP-01 replaceable range, plus the two legacy replaceable kinds
REPLACEABLE_KIND_MIN = 10_000
REPLACEABLE_KIND_MAX = 19_999


def is_replaceable_kind(kind: int) -> bool:
    """Whether only the newest event per ``(author, kind)`` is meaningful."""
    return kind in (EventKind.SET_METADATA, EventKind.CONTACTS) or (
        REPLACEABLE_KIND_MIN <= kind <= REPLACEABLE_KIND_MAX
    )


class CacheNamespace(StrEnum):
    """Independent regions of the [KeyValueCache][wotgraph.core.cache.KeyValueCache].

    Each namespace carries its own TTL and entry ceiling.

    Attributes:
        EVENTS: Raw relay query results keyed by filter.
        PROFILES: Resolved profile metadata keyed by npub.
        GRAPHS: Assembled graphs keyed by seed set and build options.
    """

    EVENTS = "events"
    PROFILES = "profiles"
    GRAPHS = "graphs"


class LinkType(StrEnum):
    """Relationship carried by a [Link][wotgraph.models.graph.Link].

    Attributes:
        FOLLOWS: One-directional follow, source lists target in its contacts.
        MUTUAL: Both identities follow each other; one link per pair.
    """

    FOLLOWS = "follows"
    MUTUAL = "mutual"


class BuildState(StrEnum):
    """States of a single graph build.

    The normal path is::

        idle -> fetching_core -> expanding_first_degree -> collapsing_mutuals
             -> [expanding_second_degree -> collapsing_mutuals]
             -> backfilling_profiles -> scoring -> complete

    ``unavailable`` is terminal and entered when no relay can be reached
    before the build starts.
    """

    IDLE = "idle"
    FETCHING_CORE = "fetching_core"
    EXPANDING_FIRST_DEGREE = "expanding_first_degree"
    COLLAPSING_MUTUALS = "collapsing_mutuals"
    EXPANDING_SECOND_DEGREE = "expanding_second_degree"
    BACKFILLING_PROFILES = "backfilling_profiles"
    SCORING = "scoring"
    COMPLETE = "complete"
    UNAVAILABLE = "unavailable"


class RelayState(StrEnum):
    """Connection state of one configured relay.

    Attributes:
        CONNECTED: The socket is open.
        CONNECTING: A connection attempt is in progress.
        DISCONNECTED: Not connected and no attempt has failed yet.
        ERROR: The last connection attempt failed.
    """

    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    ERROR = "error"
