"""
Tagged record variants parsed from relay events at the boundary.

Relays hand back heterogeneous ``nostr_sdk.Event`` objects. The fetcher
converts each one exactly once into one of three immutable variants so the
graph engine never inspects raw tags or JSON content:

* [ProfileRecord][wotgraph.models.record.ProfileRecord] -- kind 0 with decoded
  [ProfileMetadata][wotgraph.models.profile.ProfileMetadata].
* [ContactListRecord][wotgraph.models.record.ContactListRecord] -- kind 3 with the
  ordered, de-duplicated list of followed hex keys from its ``p`` tags.
* [OtherRecord][wotgraph.models.record.OtherRecord] -- anything else, including
  kind 0 events whose content fails to decode.

Examples:
    ```python
    record = parse_record(nostr_event)
    match record:
        case ContactListRecord(follows=follows):
            ...
        case ProfileRecord(profile=profile):
            ...
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ._validation import (
    is_hex_key,
    validate_hex_key,
    validate_str_not_empty,
    validate_timestamp,
)
from .constants import EVENT_KIND_MAX, EventKind
from .profile import ProfileMetadata


if TYPE_CHECKING:
    from nostr_sdk import Event as NostrEvent


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BaseRecord:
    """Fields common to every record variant.

    Attributes:
        event_id: Hex event id.
        author: Hex public key of the signer.
        kind: Event kind.
        created_at: Unix timestamp claimed by the author.
    """

    event_id: str
    author: str
    kind: int
    created_at: int

    def __post_init__(self) -> None:
        validate_str_not_empty(self.event_id, "event_id")
        validate_hex_key(self.author, "author")
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind must be <= {EVENT_KIND_MAX}")
        validate_timestamp(self.created_at, "created_at")


@dataclass(frozen=True, slots=True)
class ProfileRecord(BaseRecord):
    """Kind 0 record carrying decoded profile metadata."""

    profile: ProfileMetadata


@dataclass(frozen=True, slots=True)
class ContactListRecord(BaseRecord):
    """Kind 3 record carrying followed public keys in tag order."""

    follows: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class OtherRecord(BaseRecord):
    """Any record the engine does not interpret."""

    content: str


Record = ProfileRecord | ContactListRecord | OtherRecord


def extract_follows(tags: Sequence[Sequence[str]]) -> tuple[str, ...]:
    """Collect followed keys from ``p`` tags, preserving first-seen order.

    Entries that are not 64-character hex keys are skipped, as are
    duplicates. Upper-case hex is normalized.
    """
    follows: dict[str, None] = {}
    skipped = 0
    for tag in tags:
        if len(tag) < 2 or tag[0] != "p":  # noqa: PLR2004
            continue
        pubkey = tag[1].strip().lower()
        if not is_hex_key(pubkey):
            skipped += 1
            continue
        follows.setdefault(pubkey, None)
    if skipped:
        logger.debug("contact_entries_skipped count=%s", skipped)
    return tuple(follows)


def record_from_parts(
    event_id: str,
    author: str,
    kind: int,
    created_at: int,
    content: str,
    tags: Sequence[Sequence[str]],
) -> Record:
    """Build the record variant matching ``kind`` from raw event fields.

    A kind 0 event whose content is not a JSON object degrades to
    [OtherRecord][wotgraph.models.record.OtherRecord] instead of raising.
    """
    if kind == EventKind.CONTACTS:
        return ContactListRecord(event_id, author, kind, created_at, extract_follows(tags))
    if kind == EventKind.SET_METADATA:
        try:
            profile = ProfileMetadata.from_content(content)
        except ValueError as e:
            logger.debug("profile_decode_failed event=%s error=%s", event_id[:16], e)
        else:
            return ProfileRecord(event_id, author, kind, created_at, profile)
    return OtherRecord(event_id, author, kind, created_at, content)


def parse_record(event: NostrEvent) -> Record:
    """Convert a ``nostr_sdk.Event`` into its record variant.

    Raises:
        ValueError: If the event fields themselves are malformed (bad author
            key, out-of-range kind).
    """
    return record_from_parts(
        event_id=event.id().to_hex(),
        author=event.author().to_hex(),
        kind=event.kind().as_u16(),
        created_at=event.created_at().as_secs(),
        content=event.content(),
        tags=[tag.as_vec() for tag in event.tags().to_vec()],
    )
