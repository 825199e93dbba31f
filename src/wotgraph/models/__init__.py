"""Pure frozen dataclasses at the bottom of the dependency graph.

Models perform no network I/O. They validate eagerly in ``__post_init__`` so
an invalid instance never escapes its constructor. The only third-party
imports are ``nostr_sdk`` (key encoding, event parsing) and ``rfc3986``
(relay URL validation).

Attributes:
    Identity: Hex/npub pair for one public key.
        See [Identity][wotgraph.models.identity.Identity].
    ProfileMetadata: Decoded kind 0 profile.
        See [ProfileMetadata][wotgraph.models.profile.ProfileMetadata].
    Record: Tagged union of record variants parsed from relay events.
        See [wotgraph.models.record][wotgraph.models.record].
    RecordFilter: Relay query description with a stable cache key.
        See [RecordFilter][wotgraph.models.filter.RecordFilter].
    Node, Link, Graph: The immutable social graph.
        See [wotgraph.models.graph][wotgraph.models.graph].
    Relay: Normalized relay URL.
        See [Relay][wotgraph.models.relay.Relay].
"""

from .constants import (
    BuildState,
    CacheNamespace,
    EventKind,
    LinkType,
    RelayState,
    ServiceName,
    is_replaceable_kind,
)
from .filter import RecordFilter
from .graph import Graph, Link, Node
from .identity import Identity, hex_to_npub, npub_to_hex, parse_identity, shorten
from .profile import ProfileMetadata
from .record import (
    BaseRecord,
    ContactListRecord,
    OtherRecord,
    ProfileRecord,
    Record,
    parse_record,
    record_from_parts,
)
from .relay import Relay


__all__ = [
    "BaseRecord",
    "BuildState",
    "CacheNamespace",
    "ContactListRecord",
    "EventKind",
    "Graph",
    "Identity",
    "Link",
    "LinkType",
    "Node",
    "OtherRecord",
    "ProfileMetadata",
    "ProfileRecord",
    "Record",
    "RecordFilter",
    "Relay",
    "RelayState",
    "ServiceName",
    "hex_to_npub",
    "is_replaceable_kind",
    "npub_to_hex",
    "parse_identity",
    "parse_record",
    "record_from_parts",
    "shorten",
]
