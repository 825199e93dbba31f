"""Unit tests for services.warmer.configs module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tests.conftest import make_identity
from wotgraph.services.warmer import SeedGroup, WarmerConfig


class TestSeedGroup:
    """SeedGroup validation."""

    def test_valid(self) -> None:
        seed = make_identity()
        group = SeedGroup(name="team", seeds=[seed.npub, seed.pubkey])
        assert group.options is None

    def test_empty_seeds_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SeedGroup(name="team", seeds=[])

    def test_invalid_seed_rejected(self) -> None:
        with pytest.raises(ValidationError, match="invalid seed"):
            SeedGroup(name="team", seeds=["npub1nope"])

    def test_options(self) -> None:
        group = SeedGroup(
            name="team",
            seeds=[make_identity().npub],
            options={"include_second_degree": True},
        )
        assert group.options is not None
        assert group.options.include_second_degree is True


class TestWarmerConfig:
    """WarmerConfig defaults and validation."""

    def test_defaults(self) -> None:
        config = WarmerConfig()
        assert config.interval == 240.0
        assert config.groups == []
        assert config.prune_cache is True

    def test_interval_below_graph_ttl(self) -> None:
        from wotgraph.core.cache import CacheConfig

        assert WarmerConfig().interval < CacheConfig().graphs.ttl

    def test_duplicate_names_rejected(self) -> None:
        seed = make_identity().npub
        with pytest.raises(ValidationError, match="duplicate"):
            WarmerConfig(
                groups=[{"name": "a", "seeds": [seed]}, {"name": "a", "seeds": [seed]}]
            )
