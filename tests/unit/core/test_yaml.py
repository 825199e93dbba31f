"""
Unit tests for core.yaml module.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from wotgraph.core.exceptions import ConfigurationError
from wotgraph.core.yaml import load_yaml


class TestLoadYaml:
    """load_yaml() parsing and error handling."""

    def test_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("seeds:\n  - npub1abc\nbuild:\n  max_connections_per_node: 5\n")
        assert load_yaml(path) == {
            "seeds": ["npub1abc"],
            "build": {"max_connections_per_node": 5},
        }

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("interval: 60\n")
        assert load_yaml(str(path)) == {"interval": 60}

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("key: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_yaml(path)

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml(path)

    def test_python_tags_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "tag.yaml"
        path.write_text("x: !!python/object/apply:os.getcwd []\n")
        with pytest.raises(ConfigurationError):
            load_yaml(path)
