r"""WotGraph -- Nostr social graph construction and caching engine.

Builds a bounded web-of-trust graph around a set of core identities from
contact lists fetched off public relays, resolves profiles, scores nodes,
and caches everything with per-namespace TTLs.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         HTTP API and cache warmer
                 |
               graph           Builder, profiles, scoring, engine facade
              /     \
           core     utils      Relay pool, fetcher, cache, logging, metrics
              \     /
              models           Frozen dataclasses (no I/O)
```

Note:
    For lightweight usage, import directly from subpackages::

        from wotgraph.graph import SocialGraph
        from wotgraph.models import Identity

    Top-level imports (``from wotgraph import SocialGraph``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("wotgraph")

__all__ = [
    "Api",
    "ApiConfig",
    "BaseService",
    "BuildOptions",
    "EventFetcher",
    "Graph",
    "GraphBuilder",
    "Identity",
    "KeyValueCache",
    "Link",
    "Logger",
    "Node",
    "ProfileMetadata",
    "RelayPool",
    "SocialGraph",
    "SocialGraphConfig",
    "Warmer",
    "WarmerConfig",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("wotgraph.core", "BaseService"),
    "EventFetcher": ("wotgraph.core", "EventFetcher"),
    "KeyValueCache": ("wotgraph.core", "KeyValueCache"),
    "Logger": ("wotgraph.core", "Logger"),
    "RelayPool": ("wotgraph.core", "RelayPool"),
    "Graph": ("wotgraph.models", "Graph"),
    "Identity": ("wotgraph.models", "Identity"),
    "Link": ("wotgraph.models", "Link"),
    "Node": ("wotgraph.models", "Node"),
    "ProfileMetadata": ("wotgraph.models", "ProfileMetadata"),
    "BuildOptions": ("wotgraph.graph", "BuildOptions"),
    "GraphBuilder": ("wotgraph.graph", "GraphBuilder"),
    "SocialGraph": ("wotgraph.graph", "SocialGraph"),
    "SocialGraphConfig": ("wotgraph.graph", "SocialGraphConfig"),
    "Api": ("wotgraph.services", "Api"),
    "ApiConfig": ("wotgraph.services", "ApiConfig"),
    "Warmer": ("wotgraph.services", "Warmer"),
    "WarmerConfig": ("wotgraph.services", "WarmerConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'wotgraph' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
