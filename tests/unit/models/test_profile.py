"""Unit tests for models.profile module."""

from __future__ import annotations

import json

import pytest

from tests.conftest import make_identity
from wotgraph.models.profile import ProfileMetadata


class TestFromContent:
    """Tests for ProfileMetadata.from_content()."""

    def test_decodes_known_fields(self) -> None:
        content = json.dumps(
            {
                "name": "alice",
                "display_name": "Alice",
                "picture": "https://example.com/a.png",
                "about": "hi",
                "nip05": "alice@example.com",
                "lud16": "alice@ln.example.com",
            }
        )
        profile = ProfileMetadata.from_content(content)
        assert profile.name == "alice"
        assert profile.display_name == "Alice"
        assert profile.picture == "https://example.com/a.png"
        assert profile.nip05 == "alice@example.com"
        assert profile.lud16 == "alice@ln.example.com"
        assert profile.is_placeholder is False

    def test_camel_case_display_name(self) -> None:
        profile = ProfileMetadata.from_content('{"displayName": "Bob"}')
        assert profile.display_name == "Bob"

    def test_non_string_values_dropped(self) -> None:
        profile = ProfileMetadata.from_content('{"name": 42, "picture": null, "about": {"x": 1}}')
        assert profile.name is None
        assert profile.picture is None
        assert profile.about is None

    def test_blank_strings_dropped(self) -> None:
        assert ProfileMetadata.from_content('{"name": "   "}').name is None

    def test_unknown_keys_ignored(self) -> None:
        assert ProfileMetadata.from_content('{"foo": "bar"}') == ProfileMetadata()

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(ValueError, match="not valid JSON"):
            ProfileMetadata.from_content("{not json")

    def test_non_object_raises(self) -> None:
        with pytest.raises(ValueError, match="JSON object"):
            ProfileMetadata.from_content("[1, 2]")


class TestPlaceholder:
    """Tests for placeholder profiles."""

    def test_labelled_with_short_npub(self) -> None:
        identity = make_identity()
        profile = ProfileMetadata.placeholder(identity)
        assert profile.is_placeholder is True
        assert profile.label == identity.short()


class TestLabelAndSerialization:
    """Tests for label and to_dict()."""

    def test_label_prefers_display_name(self) -> None:
        assert ProfileMetadata(name="a", display_name="A").label == "A"

    def test_label_falls_back_to_name(self) -> None:
        assert ProfileMetadata(name="a").label == "a"

    def test_label_none_when_empty(self) -> None:
        assert ProfileMetadata().label is None

    def test_to_dict_omits_unset(self) -> None:
        assert ProfileMetadata(name="a").to_dict() == {"name": "a", "placeholder": False}
