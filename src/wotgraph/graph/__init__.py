"""Graph layer: profile resolution, graph construction, scoring and the engine facade.

Depends on ``wotgraph.core`` and ``wotgraph.models``; used by
``wotgraph.services`` and the CLI.

Attributes:
    SocialGraph: Query facade (``get_graph``, ``get_profile``,
        ``clear_caches``). See [SocialGraph][wotgraph.graph.engine.SocialGraph].
    GraphBuilder: Single-use build state machine.
        See [GraphBuilder][wotgraph.graph.builder.GraphBuilder].
    ProfileResolver: Cache-first profile lookup.
        See [ProfileResolver][wotgraph.graph.profiles.ProfileResolver].
    RelevanceScorer: Node relevance scores.
        See [RelevanceScorer][wotgraph.graph.scoring.RelevanceScorer].
"""

from .builder import BuildProgress, GraphBuilder, GraphDraft, ProgressCallback, collapse_mutuals
from .configs import BuildOptions, ScoringConfig, SocialGraphConfig
from .engine import SocialGraph, graph_cache_key, normalize_seeds
from .profiles import ProfileResolver
from .scoring import RelevanceScorer


__all__ = [
    "BuildOptions",
    "BuildProgress",
    "GraphBuilder",
    "GraphDraft",
    "ProfileResolver",
    "ProgressCallback",
    "RelevanceScorer",
    "ScoringConfig",
    "SocialGraph",
    "SocialGraphConfig",
    "collapse_mutuals",
    "graph_cache_key",
    "normalize_seeds",
]
