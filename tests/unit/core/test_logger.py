"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting, escaping and truncation
- StructuredFormatter rendering of structured and plain records
- Logger key=value and JSON output, bind(), level filtering
"""

from __future__ import annotations

import json
import logging

import pytest

from wotgraph.core.logger import Logger, StructuredFormatter, format_kv_pairs


class TestFormatKvPairs:
    """format_kv_pairs() rendering."""

    def test_empty(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple(self) -> None:
        assert format_kv_pairs({"nodes": 3, "state": "complete"}) == " nodes=3 state=complete"

    def test_quotes_values_with_spaces(self) -> None:
        assert format_kv_pairs({"error": "no relay"}) == ' error="no relay"'

    def test_escapes_quotes(self) -> None:
        assert format_kv_pairs({"msg": 'say "hi"'}) == ' msg="say \\"hi\\""'

    def test_empty_value(self) -> None:
        assert format_kv_pairs({"name": ""}) == ' name=""'

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"

    def test_truncation(self) -> None:
        result = format_kv_pairs({"v": "x" * 20}, max_value_length=5)
        assert result.startswith(' v="xxxxx...<truncated 15 chars>"')

    def test_truncation_disabled(self) -> None:
        assert format_kv_pairs({"v": "x" * 20}, max_value_length=None) == " v=" + "x" * 20


class TestStructuredFormatter:
    """StructuredFormatter.format()."""

    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("cache", logging.INFO, __file__, 1, "cache_cleared", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_plain_record(self) -> None:
        assert StructuredFormatter().format(self._record()) == "info cache cache_cleared"

    def test_structured_fields(self) -> None:
        record = self._record(structured_kv={"namespaces": "graphs"})
        assert StructuredFormatter().format(record) == "info cache cache_cleared namespaces=graphs"


class TestLogger:
    """Logger emission."""

    def test_kv_fields_attached(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_kv")
        with caplog.at_level(logging.INFO, logger="test_kv"):
            logger.info("state_changed", state="fetching_core")
        record = caplog.records[-1]
        assert record.getMessage() == "state_changed"
        assert record.structured_kv == {"state": "fetching_core"}

    def test_bind_prepends_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_bind").bind(build="a1b2")
        with caplog.at_level(logging.INFO, logger="test_bind"):
            logger.warning("fetch_failed", author="npub1x")
        assert caplog.records[-1].structured_kv == {"build": "a1b2", "author": "npub1x"}
        assert logger.name == "test_bind"

    def test_bind_does_not_mutate_parent(self, caplog: pytest.LogCaptureFixture) -> None:
        parent = Logger("test_parent")
        parent.bind(build="x")
        with caplog.at_level(logging.INFO, logger="test_parent"):
            parent.info("plain")
        assert not hasattr(caplog.records[-1], "structured_kv")

    def test_json_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_json", json_output=True)
        with caplog.at_level(logging.INFO, logger="test_json"):
            logger.info("graph_built", nodes=12)
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["message"] == "graph_built"
        assert payload["level"] == "info"
        assert payload["service"] == "test_json"
        assert payload["nodes"] == 12
        assert "timestamp" in payload

    def test_values_truncated(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_trunc", max_value_length=4)
        with caplog.at_level(logging.INFO, logger="test_trunc"):
            logger.info("long", value="abcdefgh")
        assert caplog.records[-1].structured_kv["value"] == "abcd...<truncated 4 chars>"

    def test_below_level_not_emitted(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_level")
        with caplog.at_level(logging.WARNING, logger="test_level"):
            logger.debug("hidden")
            logger.info("hidden")
        assert not [r for r in caplog.records if r.name == "test_level"]
        assert not logger.is_enabled_for(logging.DEBUG)

    def test_exception_attaches_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test_exc")
        with caplog.at_level(logging.ERROR, logger="test_exc"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("failed")
        assert caplog.records[-1].exc_info is not None
