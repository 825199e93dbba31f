"""Nostr protocol client helpers.

Thin wrappers around ``nostr_sdk`` that the relay pool and the fetcher share:
client construction, conversion of a
[RecordFilter][wotgraph.models.filter.RecordFilter] into a
``nostr_sdk.Filter``, signature-checked iteration over query results, and a
shutdown that never raises.

Attributes:
    create_client: Read-only client factory, with optional signing keys.
    build_filter: ``RecordFilter`` to ``nostr_sdk.Filter`` conversion.
    verified_events: Yield only events whose signature checks out.
    shutdown_client: Best-effort client shutdown.

Examples:
    ```python
    from wotgraph.models import RecordFilter
    from wotgraph.utils.protocol import build_filter, create_client

    client = create_client()
    f = build_filter(RecordFilter(kinds=(3,), authors=(pubkey,), limit=1))
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from nostr_sdk import (
    Alphabet,
    ClientBuilder,
    Filter,
    Kind,
    NostrSigner,
    PublicKey,
    SingleLetterTag,
    Timestamp,
)


if TYPE_CHECKING:
    from collections.abc import Iterator

    from nostr_sdk import Client, Events, Keys
    from nostr_sdk import Event as NostrEvent

    from wotgraph.models.filter import RecordFilter


logger = logging.getLogger(__name__)


def create_client(keys: Keys | None = None) -> Client:
    """Create a Nostr client; ``keys=None`` yields a read-only client.

    The client has no relays yet: call ``add_relay()`` before connecting.
    """
    builder = ClientBuilder()
    if keys is not None:
        builder = builder.signer(NostrSigner.keys(keys))
    return builder.build()


def build_filter(record_filter: RecordFilter) -> Filter:
    """Convert a [RecordFilter][wotgraph.models.filter.RecordFilter] to ``nostr_sdk.Filter``.

    Tag filters are single-letter lowercase tags, e.g. ``{"p": (hex,)}``
    becomes ``#p``. Author keys that ``nostr_sdk`` rejects are dropped with a
    warning; the remaining authors still constrain the query.
    """
    f = Filter()

    if record_filter.kinds:
        f = f.kinds([Kind(k) for k in record_filter.kinds])

    if record_filter.authors:
        authors = []
        for author in record_filter.authors:
            try:
                authors.append(PublicKey.parse(author))
            except Exception as e:  # nostr-sdk FFI raises its own error type for off-curve keys
                logger.warning("invalid_author_filter author=%s error=%s", author[:16], e)
        f = f.authors(authors)

    for letter, values in record_filter.tags.items():
        if not values:
            continue
        tag = SingleLetterTag.lowercase(getattr(Alphabet, letter.upper()))
        for value in values:
            f = f.custom_tag(tag, value)

    if record_filter.limit is not None:
        f = f.limit(record_filter.limit)
    if record_filter.since is not None:
        f = f.since(Timestamp.from_secs(record_filter.since))
    if record_filter.until is not None:
        f = f.until(Timestamp.from_secs(record_filter.until))

    return f


def verified_events(events: Events) -> Iterator[NostrEvent]:
    """Yield events from a query result whose signature verifies."""
    rejected = 0
    for evt in events.to_vec():
        try:
            valid = evt.verify()
        except (ValueError, TypeError, OverflowError):
            valid = False
        if valid:
            yield evt
        else:
            rejected += 1
    if rejected:
        logger.debug("events_rejected reason=signature count=%s", rejected)


async def shutdown_client(client: Client, timeout: float = 5.0) -> None:  # noqa: ASYNC109
    """Shut a client down, ignoring whatever the FFI layer raises."""
    # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown.
    with contextlib.suppress(Exception):
        await asyncio.wait_for(client.shutdown(), timeout=timeout)
