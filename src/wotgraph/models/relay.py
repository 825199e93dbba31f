"""
Validated Nostr relay URL.

Parses and normalizes WebSocket relay URLs (``ws://`` or ``wss://``) with
RFC 3986 validation. Loopback, private and otherwise non-global addresses
are rejected, as are query strings and fragments, which relays ignore and
which would otherwise defeat de-duplication of the configured relay list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from ipaddress import ip_address
from typing import ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from ._validation import validate_str_no_null


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable, normalized relay URL.

    Attributes:
        url: Normalized URL including scheme, without default port or
            trailing slash.
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port, or ``None``.
        path: Path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, uses another scheme, or points
            at a local address.

    Examples:
        ```python
        Relay("wss://Relay.Damus.io/").url   # 'wss://relay.damus.io'
        Relay("wss://nos.lol:443").port      # None
        ```
    """

    raw_url: str = field(repr=False)

    url: str = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}
    _LOCAL_HOSTNAMES: ClassVar[frozenset[str]] = frozenset({"localhost", "localhost.localdomain"})

    def __post_init__(self) -> None:
        validate_str_no_null(self.raw_url, "raw_url")

        uri = uri_reference(self.raw_url.strip()).normalize()
        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )
        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError("Invalid scheme: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid URL: {e}") from None

        if uri.query or uri.fragment:
            raise ValueError("Relay URL must not contain a query string or fragment")

        host = uri.host.strip("[]")
        if self._is_local(host):
            raise ValueError(f"Local addresses not allowed: {host}")

        port = int(uri.port) if uri.port else None
        if port == self._DEFAULT_PORTS[uri.scheme]:
            port = None

        path = (uri.path or "").rstrip("/") or None
        netloc = f"[{host}]" if ":" in host else host
        if port is not None:
            netloc = f"{netloc}:{port}"

        object.__setattr__(self, "scheme", uri.scheme)
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path)
        object.__setattr__(self, "url", f"{uri.scheme}://{netloc}{path or ''}")

    @classmethod
    def _is_local(cls, host: str) -> bool:
        if host.lower() in cls._LOCAL_HOSTNAMES:
            return True
        try:
            return not ip_address(host).is_global
        except ValueError:
            return "." not in host

    def __str__(self) -> str:
        return self.url
