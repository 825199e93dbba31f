"""Protocol helpers shared by the relay pool and the fetcher.

Attributes:
    create_client: Read-only ``nostr_sdk.Client`` factory.
    build_filter: [RecordFilter][wotgraph.models.filter.RecordFilter] to
        ``nostr_sdk.Filter`` conversion.

Examples:
    ```python
    from wotgraph.utils.protocol import build_filter, create_client
    ```
"""

from .protocol import build_filter, create_client, shutdown_client, verified_events


__all__ = [
    "build_filter",
    "create_client",
    "shutdown_client",
    "verified_events",
]
