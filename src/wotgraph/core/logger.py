"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module. Classes in the core, graph
and services layers log through [Logger][wotgraph.core.logger.Logger], which
attaches keyword arguments as structured fields; the models and utils layers
use plain ``logging.getLogger(__name__)`` with ``event key=%s`` messages.
[StructuredFormatter][wotgraph.core.logger.StructuredFormatter], installed on
the root handler by the CLI, renders both the same way.

Examples:
    ```python
    from wotgraph.core.logger import Logger

    logger = Logger("graph_builder")
    logger.info("state_changed", state="expanding_first_degree", nodes=3)
    # Output: info graph_builder state_changed state=expanding_first_degree nodes=3

    build_logger = logger.bind(build="a1b2")
    build_logger.warning("contact_list_fetch_failed", author="npub1abc...wxyz")
    # Output: warning graph_builder contact_list_fetch_failed build=a1b2 author=npub1abc...wxyz
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


_TRUNCATION_SUFFIX = "...<truncated {} chars>"


def _truncate(value: Any, max_value_length: int | None) -> Any:
    text = str(value)
    if max_value_length and len(text) > max_value_length:
        return text[:max_value_length] + _TRUNCATION_SUFFIX.format(len(text) - max_value_length)
    return value


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values containing whitespace, ``=`` or quotes are escaped and wrapped in
    double quotes; empty values render as ``key=""``.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to a non-empty result.

    Returns:
        Formatted string, e.g. ``' key1=value1 key2="value with spaces"'``,
        or an empty string when ``kwargs`` is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        text = str(_truncate(value, max_value_length))
        if not text or any(ch in text for ch in ' ="\''):
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={text}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Render every record as ``level logger message key=value ...``.

    Structured fields come from the ``structured_kv`` extra attached by
    [Logger][wotgraph.core.logger.Logger]. Records from plain
    ``logging.getLogger()`` calls carry none and are emitted as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        fields: dict[str, Any] = getattr(record, "structured_kv", {})
        if fields:
            line += format_kv_pairs(fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    """Structured logger that appends keyword arguments as fields.

    Mirrors the standard logging API (``debug`` through ``exception``) with an
    added ``**kwargs`` parameter. [bind()][wotgraph.core.logger.Logger.bind]
    returns a logger that prepends fixed fields to every call, which is how a
    single graph build tags all of its log lines.
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Name passed to ``logging.getLogger``.
            json_output: Emit one JSON object per line instead of key=value.
            max_value_length: Per-value truncation threshold (default 1000).
            context: Fields prepended to every log call.
        """
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a logger sharing this one's target with extra fixed fields."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _emit(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {**self._context, **kwargs}
        if self._json_output:
            payload = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self._logger.name,
                "message": msg,
                **fields,
            }
            self._logger.log(level, json.dumps(payload, default=str), exc_info=exc_info)
            return
        extra = {}
        if fields:
            extra["structured_kv"] = {
                k: _truncate(v, self._max_value_length) for k, v in fields.items()
            }
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._emit(logging.DEBUG, msg, kwargs, exc_info=False)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._emit(logging.INFO, msg, kwargs, exc_info=False)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._emit(logging.WARNING, msg, kwargs, exc_info=False)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._emit(logging.ERROR, msg, kwargs, exc_info=False)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._emit(logging.CRITICAL, msg, kwargs, exc_info=False)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active traceback attached."""
        self._emit(logging.ERROR, msg, kwargs, exc_info=True)
