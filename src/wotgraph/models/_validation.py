"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used exclusively by
``__post_init__`` methods in sibling model modules to enforce runtime
type constraints and null-byte safety.
"""

from __future__ import annotations

import re
from typing import Any


HEX_KEY_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def validate_hex_key(value: Any, name: str) -> None:
    """Raise if *value* is not a 64-character lowercase hex string."""
    validate_str_no_null(value, name)
    if not HEX_KEY_PATTERN.match(value):
        raise ValueError(f"{name} must be 64 lowercase hex characters")


def is_hex_key(value: str) -> bool:
    """Non-raising counterpart of [validate_hex_key][wotgraph.models._validation.validate_hex_key]."""
    return isinstance(value, str) and HEX_KEY_PATTERN.match(value) is not None


def optional_str(value: Any) -> str | None:
    """Return *value* stripped if it is a non-empty string, else ``None``.

    Kind 0 content is free-form JSON written by arbitrary clients, so
    numbers, nulls and nested objects show up where strings are expected.
    """
    if not isinstance(value, str):
        return None
    value = value.replace("\x00", "").strip()
    return value or None
