"""
Bounded-time relay queries returning parsed, de-duplicated records.

[EventFetcher][wotgraph.core.fetcher.EventFetcher] is the only component that
talks to relays through the pool's client. Every query:

1. is rejected up front if it names an explicit empty author list;
2. is served from the ``events`` cache namespace when a fresh entry exists;
3. runs under its own time budget -- when the budget runs out the caller
   gets whatever arrived (possibly nothing) and the partial result is not
   cached. Empty results are not cached either, so "nothing found" is asked
   again next time;
4. keeps only signature-verified events, parses them into
   [Record][wotgraph.models.record] variants, and collapses replaceable
   kinds (0, 3, 10000-19999) to the newest event per ``(author, kind)``.

Failures other than the time budget surface as
[ConnectivityError][wotgraph.core.exceptions.ConnectivityError].
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from wotgraph.models.constants import (
    INTERACTION_KINDS,
    CacheNamespace,
    EventKind,
    is_replaceable_kind,
)
from wotgraph.models.filter import RecordFilter
from wotgraph.models.record import ContactListRecord, OtherRecord, Record, parse_record
from wotgraph.utils.protocol import build_filter, verified_events

from .exceptions import ConnectivityError
from .logger import Logger


if TYPE_CHECKING:
    from collections.abc import Iterable

    from wotgraph.models.identity import Identity

    from .cache import KeyValueCache
    from .pool import RelayPool


class FetcherConfig(BaseModel):
    """Query time budgets and limits.

    Attributes:
        default_timeout: Seconds a query may run when the caller gives none.
        timeout_grace: Extra seconds allowed on top of the relay-side timeout
            before the query is abandoned locally.
        max_limit: Ceiling applied to any filter ``limit``.
    """

    default_timeout: float = Field(default=8.0, ge=1.0, le=60.0)
    timeout_grace: float = Field(default=2.0, ge=0.0, le=30.0)
    max_limit: int = Field(default=500, ge=1, le=5000)


def collapse_replaceable(records: Iterable[Record]) -> list[Record]:
    """Keep the newest record per ``(author, kind)`` for replaceable kinds.

    Non-replaceable records are de-duplicated by event id only. Among
    replaceable records with equal ``created_at`` the first one seen wins.
    Output order follows first appearance of each key.
    """
    kept: dict[tuple[str, ...], Record] = {}
    for record in records:
        if is_replaceable_kind(record.kind):
            key: tuple[str, ...] = (record.author, str(record.kind))
        else:
            key = (record.event_id,)
        current = kept.get(key)
        if current is None or record.created_at > current.created_at:
            kept[key] = record
    return list(kept.values())


class EventFetcher:
    """Issue relay queries through a [RelayPool][wotgraph.core.pool.RelayPool].

    Args:
        pool: Connected relay pool.
        cache: Cache whose ``events`` namespace stores complete results;
            ``None`` disables caching.
        config: Time budgets and limits.
    """

    def __init__(
        self,
        pool: RelayPool,
        cache: KeyValueCache | None = None,
        config: FetcherConfig | None = None,
    ) -> None:
        self._pool = pool
        self._cache = cache
        self._config = config or FetcherConfig()
        self._logger = Logger("event_fetcher")

    @property
    def config(self) -> FetcherConfig:
        return self._config

    async def fetch(
        self,
        record_filter: RecordFilter,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> list[Record]:
        """Run one query and return parsed records.

        Args:
            record_filter: What to ask relays for.
            timeout: Relay-side time budget in seconds; defaults to
                ``config.default_timeout``.
            use_cache: Consult and populate the ``events`` namespace. With
                ``False`` the relays are always asked and nothing is stored.

        Returns:
            Records in arrival order with replaceable kinds collapsed. May be
            empty, including when the time budget ran out.

        Raises:
            ValueError: If ``record_filter.authors`` is an empty tuple.
            ConnectivityError: If the query fails for a reason other than
                running out of time (including an unconnected pool).
        """
        if record_filter.authors is not None and not record_filter.authors:
            raise ValueError("authors must not be empty; use None to match any author")

        if record_filter.limit is None or record_filter.limit > self._config.max_limit:
            record_filter = RecordFilter(
                kinds=record_filter.kinds,
                authors=record_filter.authors,
                tags=record_filter.tags,
                limit=self._config.max_limit,
                since=record_filter.since,
                until=record_filter.until,
            )

        key = record_filter.cache_key()
        if use_cache and self._cache is not None:
            cached = self._cache.get(CacheNamespace.EVENTS, key)
            if cached is not None:
                return list(cached)

        budget = self._config.default_timeout if timeout is None else timeout
        records, complete = await self._query(record_filter, budget)

        if complete and records and use_cache and self._cache is not None:
            self._cache.set(CacheNamespace.EVENTS, key, tuple(records))
        return records

    async def _query(self, record_filter: RecordFilter, budget: float) -> tuple[list[Record], bool]:
        """Run the query; return ``(records, complete)``."""
        client = self._pool.client
        nostr_filter = build_filter(record_filter)
        start = time.monotonic()

        try:
            async with asyncio.timeout(budget + self._config.timeout_grace):
                events = await client.fetch_events(nostr_filter, timedelta(seconds=budget))
        except TimeoutError:
            self._logger.warning(
                "fetch_timeout",
                filter=record_filter.cache_key(),
                timeout_s=budget,
            )
            return [], False
        except Exception as e:  # nostr-sdk FFI can raise arbitrary exception types
            self._logger.warning("fetch_failed", filter=record_filter.cache_key(), error=str(e))
            raise ConnectivityError(f"relay query failed: {e}") from e

        records: list[Record] = []
        for evt in verified_events(events):
            try:
                records.append(parse_record(evt))
            except (ValueError, TypeError) as e:
                self._logger.debug("record_skipped", error=str(e))

        collapsed = collapse_replaceable(records)
        elapsed = time.monotonic() - start
        # fetch_events returns what arrived once the relay-side timeout elapsed
        complete = elapsed < budget
        self._logger.debug(
            "fetch_completed",
            records=len(collapsed),
            duration_s=round(elapsed, 3),
            complete=complete,
        )
        return collapsed, complete

    # -------------------------------------------------------------------------
    # Convenience Queries
    # -------------------------------------------------------------------------

    async def fetch_latest(
        self,
        author: Identity,
        kind: int,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> Record | None:
        """Newest record of ``kind`` signed by ``author``, or ``None``."""
        records = await self.fetch(
            RecordFilter(kinds=(kind,), authors=(author.pubkey,), limit=1),
            timeout,
            use_cache=use_cache,
        )
        matching = [r for r in records if r.author == author.pubkey and r.kind == kind]
        if not matching:
            return None
        return max(matching, key=lambda r: r.created_at)

    async def fetch_contact_list(
        self,
        identity: Identity,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> ContactListRecord | None:
        """Newest contact list published by ``identity``, or ``None``."""
        record = await self.fetch_latest(
            identity, EventKind.CONTACTS, timeout, use_cache=use_cache
        )
        return record if isinstance(record, ContactListRecord) else None

    async def fetch_followers(
        self,
        identity: Identity,
        limit: int,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> list[ContactListRecord]:
        """Contact lists that reference ``identity`` in a ``p`` tag.

        Authors whose newest list no longer contains ``identity`` are
        dropped, as is ``identity`` itself.
        """
        records = await self.fetch(
            RecordFilter(
                kinds=(EventKind.CONTACTS,),
                tags={"p": (identity.pubkey,)},
                limit=limit,
            ),
            timeout,
            use_cache=use_cache,
        )
        return [
            r
            for r in records
            if isinstance(r, ContactListRecord)
            and r.author != identity.pubkey
            and identity.pubkey in r.follows
        ][:limit]

    async def fetch_interactions(
        self,
        identity: Identity,
        since: int,
        until: int | None = None,
        limit: int | None = None,
        timeout: float | None = None,  # noqa: ASYNC109
        *,
        use_cache: bool = True,
    ) -> list[OtherRecord]:
        """Notes, reposts and reactions by others that tag ``identity``.

        Args:
            identity: The identity referenced in a ``p`` tag.
            since: Oldest ``created_at`` to include.
            until: Newest ``created_at`` to include; unbounded when ``None``.
            limit: Events requested from each relay; clamped to
                ``config.max_limit``.

        Returns:
            Matching records, newest first. Events signed by ``identity``
            itself are dropped.
        """
        records = await self.fetch(
            RecordFilter(
                kinds=INTERACTION_KINDS,
                tags={"p": (identity.pubkey,)},
                limit=limit,
                since=since,
                until=until,
            ),
            timeout,
            use_cache=use_cache,
        )
        interactions = [
            r
            for r in records
            if isinstance(r, OtherRecord)
            and r.kind in INTERACTION_KINDS
            and r.author != identity.pubkey
        ]
        return sorted(interactions, key=lambda r: r.created_at, reverse=True)
