"""
Immutable social graph: nodes, links, and the graph that owns them.

A [Graph][wotgraph.models.graph.Graph] is validated on construction and never
mutated afterwards; rebuilding, expanding or scoring always produces a new
instance. Construction enforces:

* node ids are unique;
* every link references two nodes present in the graph;
* no two links share the same unordered pair of endpoints;
* no link connects a node to itself.

See Also:
    [GraphBuilder][wotgraph.graph.builder.GraphBuilder]: Produces graphs from
        relay data.
    [RelevanceScorer][wotgraph.graph.scoring.RelevanceScorer]: Returns a copy
        with ``score`` filled in.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ._validation import validate_str_not_empty, validate_timestamp
from .constants import LinkType


FOLLOWS_WEIGHT = 1.0
MUTUAL_WEIGHT = 2.0
MAX_DEGREE = 2


@dataclass(frozen=True, slots=True)
class Node:
    """One identity in the graph.

    Attributes:
        id: ``node-<npub>`` (or ``node-<raw input>`` for undecodable core seeds).
        pubkey: Hex public key; empty for undecodable core seeds.
        npub: Bech32 public key, or the raw input for undecodable core seeds.
        display_name: Resolved label, or the shortened npub.
        avatar_url: Profile picture URL, if any.
        nip05: NIP-05 identifier, if any.
        is_core: True for seed identities.
        is_mutual: True when at least one mutual link touches this node.
        degree: Hop distance from the core set (0, 1 or 2).
        score: Relevance assigned by the scorer.
        last_seen: Newest activity timestamp observed for the identity, if any.
    """

    id: str
    pubkey: str
    npub: str
    display_name: str
    avatar_url: str | None = None
    nip05: str | None = None
    is_core: bool = False
    is_mutual: bool = False
    degree: int = 0
    score: float = 0.0
    last_seen: int | None = None

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_timestamp(self.degree, "degree")
        if self.last_seen is not None:
            validate_timestamp(self.last_seen, "last_seen")
        if self.degree > MAX_DEGREE:
            raise ValueError(f"degree must be <= {MAX_DEGREE}, got {self.degree}")
        if self.is_core and self.degree != 0:
            raise ValueError("core nodes must have degree 0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "npub": self.npub,
            "name": self.display_name,
            "picture": self.avatar_url,
            "nip05": self.nip05,
            "isCoreNode": self.is_core,
            "isMutual": self.is_mutual,
            "degree": self.degree,
            "score": round(self.score, 4),
            "lastSeen": self.last_seen,
        }


@dataclass(frozen=True, slots=True)
class Link:
    """Directed follow or undirected mutual relationship between two nodes.

    For ``MUTUAL`` links ``source``/``target`` order carries no meaning.
    """

    source: str
    target: str
    type: LinkType = LinkType.FOLLOWS
    weight: float = FOLLOWS_WEIGHT

    def __post_init__(self) -> None:
        validate_str_not_empty(self.source, "source")
        validate_str_not_empty(self.target, "target")
        object.__setattr__(self, "type", LinkType(self.type))

    @classmethod
    def follows(cls, source: str, target: str) -> Link:
        return cls(source, target, LinkType.FOLLOWS, FOLLOWS_WEIGHT)

    @classmethod
    def mutual(cls, source: str, target: str) -> Link:
        return cls(source, target, LinkType.MUTUAL, MUTUAL_WEIGHT)

    @property
    def pair(self) -> frozenset[str]:
        """Unordered endpoint pair."""
        return frozenset((self.source, self.target))

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source, self.target)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": str(self.type),
            "value": self.weight,
        }


@dataclass(frozen=True, slots=True)
class Graph:
    """Validated, immutable set of nodes and links.

    Attributes:
        nodes: Nodes in discovery order.
        links: Links after mutual collapse.
        built_at: Unix timestamp of assembly.

    Raises:
        ValueError: If any structural invariant is violated.
    """

    nodes: tuple[Node, ...] = ()
    links: tuple[Link, ...] = ()
    built_at: int = 0
    _index: dict[str, Node] = field(
        default_factory=dict, init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "links", tuple(self.links))
        validate_timestamp(self.built_at, "built_at")

        index: dict[str, Node] = {}
        for node in self.nodes:
            if node.id in index:
                raise ValueError(f"duplicate node id: {node.id}")
            index[node.id] = node

        pairs: set[frozenset[str]] = set()
        for link in self.links:
            if link.source == link.target:
                raise ValueError(f"self link on {link.source}")
            if link.source not in index or link.target not in index:
                raise ValueError(f"link {link.source} -> {link.target} references a missing node")
            if link.pair in pairs:
                raise ValueError(f"duplicate link between {link.source} and {link.target}")
            pairs.add(link.pair)

        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def get(self, node_id: str) -> Node | None:
        return self._index.get(node_id)

    @property
    def core_nodes(self) -> tuple[Node, ...]:
        return tuple(n for n in self.nodes if n.is_core)

    def links_of(self, node_id: str) -> tuple[Link, ...]:
        """Links touching ``node_id`` in either direction."""
        return tuple(link for link in self.links if link.touches(node_id))

    def count_by_degree(self, degree: int) -> int:
        return sum(1 for n in self.nodes if n.degree == degree)

    def to_dict(self) -> dict[str, Any]:
        """JSON shape consumed by presentation layers."""
        return {
            "builtAt": self.built_at,
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [link.to_dict() for link in self.links],
        }
