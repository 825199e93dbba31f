"""
Unit tests for core.exceptions module.
"""

from __future__ import annotations

import pytest

from wotgraph.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    DecodeError,
    GraphIntegrityError,
    RelaysUnavailableError,
    RelayTimeoutError,
    WotGraphError,
)


class TestHierarchy:
    """Subclass relationships callers rely on."""

    @pytest.mark.parametrize(
        "exc_type",
        [
            ConfigurationError,
            ConnectivityError,
            DecodeError,
            GraphIntegrityError,
            RelaysUnavailableError,
            RelayTimeoutError,
        ],
    )
    def test_all_derive_from_base(self, exc_type: type[Exception]) -> None:
        assert issubclass(exc_type, WotGraphError)

    def test_connectivity_family(self) -> None:
        assert issubclass(RelaysUnavailableError, ConnectivityError)
        assert issubclass(RelayTimeoutError, ConnectivityError)

    def test_decode_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            raise DecodeError("bad npub")


class TestRelaysUnavailableError:
    """Attributes carried by RelaysUnavailableError."""

    def test_attributes(self) -> None:
        relays = ["wss://a.example.com"]
        err = RelaysUnavailableError("no relay reachable", attempts=3, relays=relays)
        relays.append("wss://b.example.com")
        assert str(err) == "no relay reachable"
        assert err.attempts == 3
        assert err.relays == ["wss://a.example.com"]

    def test_defaults(self) -> None:
        err = RelaysUnavailableError("down")
        assert err.attempts == 0
        assert err.relays == []
