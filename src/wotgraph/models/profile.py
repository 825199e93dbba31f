"""
Profile metadata decoded from kind 0 events.

Kind 0 content is a JSON object written by arbitrary clients, so every field
is optional and loosely typed. [ProfileMetadata][wotgraph.models.profile.ProfileMetadata]
keeps only the string fields it understands and drops everything else.

When a profile cannot be obtained the engine substitutes a placeholder whose
display name is the shortened npub; placeholders are flagged so caches can
refuse them.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from ._validation import optional_str


if TYPE_CHECKING:
    from .identity import Identity


@dataclass(frozen=True, slots=True)
class ProfileMetadata:
    """Immutable subset of a Nostr profile.

    Attributes:
        name: Short handle (``name``).
        display_name: Human-readable name (``display_name`` or ``displayName``).
        picture: Avatar URL.
        about: Free-text biography.
        nip05: NIP-05 internet identifier (``user@domain``).
        website: Personal URL.
        banner: Banner image URL.
        lud16: Lightning address.
        is_placeholder: True for degraded profiles synthesized locally.
    """

    name: str | None = None
    display_name: str | None = None
    picture: str | None = None
    about: str | None = None
    nip05: str | None = None
    website: str | None = None
    banner: str | None = None
    lud16: str | None = None
    is_placeholder: bool = False

    @classmethod
    def from_content(cls, content: str) -> ProfileMetadata:
        """Decode the JSON content of a kind 0 event.

        Raises:
            ValueError: If the content is not a JSON object.
        """
        try:
            data = json.loads(content)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"profile content is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"profile content must be a JSON object, got {type(data).__name__}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileMetadata:
        display_name = optional_str(data.get("display_name")) or optional_str(
            data.get("displayName")
        )
        return cls(
            name=optional_str(data.get("name")),
            display_name=display_name,
            picture=optional_str(data.get("picture")),
            about=optional_str(data.get("about")),
            nip05=optional_str(data.get("nip05")),
            website=optional_str(data.get("website")),
            banner=optional_str(data.get("banner")),
            lud16=optional_str(data.get("lud16")),
        )

    @classmethod
    def placeholder(cls, identity: Identity) -> ProfileMetadata:
        """Degraded profile labelled with the shortened npub."""
        return cls(display_name=identity.short(), is_placeholder=True)

    @property
    def label(self) -> str | None:
        """Best human-readable label: display name, then name."""
        return self.display_name or self.name

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping with unset fields omitted."""
        data = asdict(self)
        is_placeholder = data.pop("is_placeholder")
        result = {k: v for k, v in data.items() if v is not None}
        result["placeholder"] = is_placeholder
        return result
