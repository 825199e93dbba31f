"""
Relay query filter with a stable cache key.

[RecordFilter][wotgraph.models.filter.RecordFilter] is the engine's own
description of a relay query. It stays free of ``nostr_sdk`` types so it can
be hashed, compared, and turned into a cache key; the conversion to a
``nostr_sdk.Filter`` lives in
[build_filter()][wotgraph.utils.protocol.build_filter].
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ._validation import is_hex_key, validate_timestamp
from .constants import EVENT_KIND_MAX


def _as_tuple(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(v.strip().lower() for v in values)


@dataclass(frozen=True, slots=True)
class RecordFilter:
    """Immutable relay query description.

    Sequences are normalized to tuples on construction. ``authors=None`` means
    "any author", whereas an empty ``authors`` is kept as-is so the fetcher
    can reject it: an empty author list is almost always a caller bug that
    would otherwise turn into an unbounded query.

    Attributes:
        kinds: Event kinds to match.
        authors: Hex author keys, or ``None`` for any author.
        tags: Single-letter tag filters, e.g. ``{"p": ("<hex>",)}``.
        limit: Maximum number of events requested from each relay.
        since: Lower bound on ``created_at`` (inclusive).
        until: Upper bound on ``created_at`` (inclusive).

    Raises:
        ValueError: On out-of-range kinds, non-hex authors, multi-letter tag
            names, or an inverted time window.
    """

    kinds: tuple[int, ...] = ()
    authors: tuple[str, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    limit: int | None = None
    since: int | None = None
    until: int | None = None

    def __post_init__(self) -> None:
        for kind in self.kinds:
            validate_timestamp(kind, "kind")
            if kind > EVENT_KIND_MAX:
                raise ValueError(f"kind must be <= {EVENT_KIND_MAX}")
        object.__setattr__(self, "kinds", tuple(int(k) for k in self.kinds))

        if self.authors is not None:
            authors = _as_tuple(self.authors)
            bad = [a for a in authors if not is_hex_key(a)]
            if bad:
                raise ValueError(f"authors must be hex public keys: {bad[0][:16]}")
            object.__setattr__(self, "authors", authors)

        tags: dict[str, tuple[str, ...]] = {}
        for letter, values in self.tags.items():
            if len(letter) != 1 or not letter.isalpha():
                raise ValueError(f"tag filter name must be a single letter: {letter!r}")
            tags[letter] = _as_tuple(values)
        object.__setattr__(self, "tags", tags)

        if self.limit is not None:
            validate_timestamp(self.limit, "limit")
        if self.since is not None:
            validate_timestamp(self.since, "since")
        if self.until is not None:
            validate_timestamp(self.until, "until")
        if self.since is not None and self.until is not None and self.since > self.until:
            raise ValueError("since must be <= until")

    def __hash__(self) -> int:
        return hash(self.cache_key())

    def cache_key(self) -> str:
        """Order-independent key for the ``events`` cache namespace.

        Two filters that select the same events produce the same key
        regardless of the order in which kinds, authors or tag values were
        supplied.
        """
        parts = [
            "kinds=" + ",".join(str(k) for k in sorted(set(self.kinds))),
            "authors=" + ("*" if self.authors is None else ",".join(sorted(set(self.authors)))),
        ]
        for letter in sorted(self.tags):
            parts.append(f"#{letter}=" + ",".join(sorted(set(self.tags[letter]))))
        parts.append(f"limit={self.limit if self.limit is not None else ''}")
        parts.append(f"since={self.since if self.since is not None else ''}")
        parts.append(f"until={self.until if self.until is not None else ''}")
        return "events:" + ":".join(parts)
