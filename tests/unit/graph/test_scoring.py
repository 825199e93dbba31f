"""
Unit tests for graph.scoring module.
"""

from __future__ import annotations

import pytest

from tests.conftest import BASE_TIME, make_identities
from wotgraph.graph.configs import ScoringConfig
from wotgraph.graph.scoring import SECONDS_PER_DAY, RelevanceScorer
from wotgraph.models.graph import Graph, Link, Node


def _node(identity, *, core: bool = False, degree: int = 1) -> Node:
    return Node(
        id=identity.node_id,
        pubkey=identity.pubkey,
        npub=identity.npub,
        display_name=identity.short(),
        is_core=core,
        degree=0 if core else degree,
    )


class TestRecencyBonus:
    """RelevanceScorer.recency_bonus()."""

    def test_unknown(self) -> None:
        assert RelevanceScorer().recency_bonus(None, BASE_TIME) == 0.0

    def test_fresh_capped(self) -> None:
        assert RelevanceScorer().recency_bonus(BASE_TIME, BASE_TIME) == 2.0

    def test_half_life(self) -> None:
        scorer = RelevanceScorer()
        age = 14 * SECONDS_PER_DAY
        assert scorer.recency_bonus(BASE_TIME - age, BASE_TIME) == pytest.approx(1.0)

    def test_future_timestamp_treated_as_now(self) -> None:
        assert RelevanceScorer().recency_bonus(BASE_TIME + 100, BASE_TIME) == 2.0


class TestScore:
    """RelevanceScorer.score()."""

    def test_core_connectivity_and_mutual_bonus(self) -> None:
        core_a, core_b, friend, loner = make_identities(4)
        graph = Graph(
            nodes=(
                _node(core_a, core=True),
                _node(core_b, core=True),
                _node(friend),
                _node(loner, degree=2),
            ),
            links=(
                Link.mutual(core_a.node_id, friend.node_id),
                Link.follows(core_b.node_id, friend.node_id),
                Link.follows(friend.node_id, loner.node_id),
            ),
            built_at=BASE_TIME,
        )

        scored = RelevanceScorer().score(graph, now=BASE_TIME)
        by_id = {n.id: n.score for n in scored.nodes}

        # two core connections (3 each) plus one mutual core link (2)
        assert by_id[friend.node_id] == 8.0
        assert by_id[loner.node_id] == 0.0
        # core bonus only: links to non-core nodes add nothing
        assert by_id[core_a.node_id] == 100.0
        assert scored.links == graph.links
        assert [n.id for n in scored.nodes] == [n.id for n in graph.nodes]

    def test_recency_never_outranks_a_connection(self) -> None:
        core, connected, active = make_identities(3)
        graph = Graph(
            nodes=(_node(core, core=True), _node(connected), _node(active, degree=2)),
            links=(Link.follows(core.node_id, connected.node_id),),
            built_at=BASE_TIME,
        )
        scored = RelevanceScorer().score(graph, {active.pubkey: BASE_TIME}, now=BASE_TIME)
        by_id = {n.id: n.score for n in scored.nodes}
        assert by_id[connected.node_id] > by_id[active.node_id]

    def test_records_last_seen(self) -> None:
        core, friend = make_identities(2)
        graph = Graph(nodes=(_node(core, core=True), _node(friend)), links=())
        scored = RelevanceScorer().score(graph, {friend.pubkey: BASE_TIME - 50}, now=BASE_TIME)
        assert scored.get(friend.node_id).last_seen == BASE_TIME - 50
        assert scored.get(core.node_id).last_seen is None

    def test_rescoring_keeps_known_activity(self) -> None:
        core, friend = make_identities(2)
        graph = Graph(nodes=(_node(core, core=True), _node(friend)), links=())
        scorer = RelevanceScorer()
        once = scorer.score(graph, {friend.pubkey: BASE_TIME}, now=BASE_TIME)

        again = scorer.score(once, now=BASE_TIME)

        assert again.get(friend.node_id).last_seen == BASE_TIME
        assert again.get(friend.node_id).score == once.get(friend.node_id).score == 2.0

    def test_rank(self) -> None:
        core, friend = make_identities(2)
        graph = Graph(
            nodes=(_node(friend), _node(core, core=True)),
            links=(Link.follows(core.node_id, friend.node_id),),
        )
        ranked = RelevanceScorer.rank(RelevanceScorer().score(graph, now=BASE_TIME), limit=1)
        assert [n.id for n in ranked] == [core.node_id]


class TestScoringConfig:
    """ScoringConfig validation."""

    def test_cap_must_stay_below_connection_weight(self) -> None:
        with pytest.raises(ValueError, match="recency_cap"):
            ScoringConfig(recency_cap=3.0, core_connection_weight=3.0)
