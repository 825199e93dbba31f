"""
Nostr identity with lossless hex/npub conversion.

Every identity has two interchangeable text forms: a 64-character
lowercase hex public key (what relays and ``p`` tags carry) and a NIP-19
``npub1...`` bech32 string (what users paste and what node ids are built
from). Conversion is delegated to ``nostr_sdk.PublicKey``.

The module-level converters never raise: malformed input yields ``None``
so callers can skip bad contact-list entries without a try block per item.

Examples:
    ```python
    identity = Identity.parse("npub1sg6plzptd64u62a878hep2kev88swjh3tw00gjsfl8f237lmu63q0uf63m")
    identity.pubkey   # '82341f882b6eabcd2ba7f1ef90aad961cf074af15b9ef44a09f9d2a8fbfbe6a2'
    identity.short()  # 'npub1sg6...f63m'
    identity.node_id  # 'node-npub1sg6plzptd6...'
    ```
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from nostr_sdk import PublicKey

from ._validation import is_hex_key, validate_hex_key


logger = logging.getLogger(__name__)

NPUB_PREFIX = "npub1"
NODE_ID_PREFIX = "node-"


def shorten(value: str, head: int = 8, tail: int = 4) -> str:
    """Render ``value`` as ``<first head chars>...<last tail chars>``.

    Strings too short to benefit from shortening are returned unchanged.
    """
    if len(value) <= head + tail + 3:
        return value
    return f"{value[:head]}...{value[-tail:]}"


def hex_to_npub(pubkey: str) -> str | None:
    """Encode a hex public key as ``npub1...``; ``None`` if malformed."""
    if not isinstance(pubkey, str):
        return None
    candidate = pubkey.strip().lower()
    if not is_hex_key(candidate):
        return None
    try:
        return PublicKey.parse(candidate).to_bech32()
    except Exception as e:  # nostr-sdk FFI raises its own error type for off-curve keys
        logger.debug("hex_decode_failed pubkey=%s error=%s", shorten(candidate), e)
        return None


def npub_to_hex(npub: str) -> str | None:
    """Decode an ``npub1...`` string to a hex public key; ``None`` if malformed."""
    if not isinstance(npub, str):
        return None
    candidate = npub.strip().lower()
    if not candidate.startswith(NPUB_PREFIX):
        return None
    try:
        return PublicKey.parse(candidate).to_hex()
    except Exception as e:  # nostr-sdk FFI raises its own error type for bad checksums
        logger.debug("npub_decode_failed npub=%s error=%s", shorten(candidate), e)
        return None


@dataclass(frozen=True, slots=True)
class Identity:
    """Immutable Nostr identity holding both encodings of one public key.

    Construct from the hex form directly, or from either form through
    [parse()][wotgraph.models.identity.Identity.parse]. Equality and hashing
    use the hex key only, so an identity built from an npub equals the one
    built from its hex.

    Attributes:
        pubkey: 64-character lowercase hex public key.
        npub: NIP-19 bech32 encoding, computed on construction.

    Raises:
        ValueError: If ``pubkey`` is not a valid secp256k1 x-only key.
    """

    pubkey: str
    npub: str = field(init=False, compare=False)

    def __post_init__(self) -> None:
        validate_hex_key(self.pubkey, "pubkey")
        npub = hex_to_npub(self.pubkey)
        if npub is None:
            raise ValueError(f"pubkey is not a valid public key: {shorten(self.pubkey)}")
        object.__setattr__(self, "npub", npub)

    @classmethod
    def parse(cls, value: str) -> Identity:
        """Build an identity from an ``npub1...`` string or a hex key.

        Surrounding whitespace and upper-case hex are tolerated.

        Raises:
            ValueError: If ``value`` is neither form or fails to decode.
        """
        if not isinstance(value, str):
            raise ValueError(f"identity must be a str, got {type(value).__name__}")
        candidate = value.strip()
        if candidate.lower().startswith(NPUB_PREFIX):
            pubkey = npub_to_hex(candidate)
            if pubkey is None:
                raise ValueError(f"malformed npub: {shorten(candidate)}")
            return cls(pubkey)
        return cls(candidate.lower())

    @property
    def node_id(self) -> str:
        """Deterministic graph node id, ``node-<npub>``."""
        return f"{NODE_ID_PREFIX}{self.npub}"

    def short(self) -> str:
        """Shortened npub for display, e.g. ``npub1abc...wxyz``."""
        return shorten(self.npub)

    def __str__(self) -> str:
        return self.npub


def parse_identity(value: str) -> Identity | None:
    """Non-raising counterpart of [Identity.parse()][wotgraph.models.identity.Identity.parse]."""
    try:
        return Identity.parse(value)
    except (TypeError, ValueError):
        return None
