"""Registry index mapping ``name@tag`` references to environments."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from karapace.errors import SerializationError


def _require_str(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str):
        raise SerializationError(f"missing or invalid field `{name}`")
    return value


@dataclass(frozen=True)
class RegistryEntry:
    """One published environment."""

    env_id: str
    short_id: str
    pushed_at: str
    name: str | None = None

    def to_dict(self) -> dict[str, str]:
        """Return the JSON-ready form; ``name`` is omitted when unset."""
        out = {"env_id": self.env_id, "short_id": self.short_id}
        if self.name is not None:
            out["name"] = self.name
        out["pushed_at"] = self.pushed_at
        return out

    @classmethod
    def from_dict(cls, data: Any) -> RegistryEntry:
        """Build an entry from its JSON form."""
        if not isinstance(data, dict):
            raise SerializationError("registry entry must be an object")
        name = data.get("name")
        if name is not None and not isinstance(name, str):
            raise SerializationError("invalid field `name`")
        return cls(
            env_id=_require_str(data, "env_id"),
            short_id=_require_str(data, "short_id"),
            pushed_at=_require_str(data, "pushed_at"),
            name=name,
        )


@dataclass
class Registry:
    """The registry index, keyed by ``name@tag`` or env id."""

    entries: dict[str, RegistryEntry] = field(default_factory=dict)

    @classmethod
    def from_bytes(cls, data: bytes) -> Registry:
        """Parse a registry from its JSON bytes."""
        try:
            doc = json.loads(data)
            if not isinstance(doc, dict) or not isinstance(doc.get("entries"), dict):
                raise SerializationError("missing or invalid field `entries`")
            entries = {key: RegistryEntry.from_dict(value) for key, value in doc["entries"].items()}
        except (ValueError, SerializationError) as exc:
            raise SerializationError(f"invalid registry: {exc}") from exc
        return cls(entries=entries)

    def to_bytes(self) -> bytes:
        """Serialise the registry as pretty JSON with sorted keys."""
        doc = {"entries": {key: self.entries[key].to_dict() for key in sorted(self.entries)}}
        return json.dumps(doc, indent=2, ensure_ascii=False).encode("utf-8")

    def publish(self, key: str, entry: RegistryEntry) -> None:
        """Insert or replace an entry."""
        self.entries[key] = entry

    def lookup(self, key: str) -> RegistryEntry | None:
        """Return the entry for ``key``, or None."""
        return self.entries.get(key)

    def list_keys(self) -> list[str]:
        """Return all keys in sorted order."""
        return sorted(self.entries)

    def find_by_env_id(self, env_id: str) -> list[tuple[str, RegistryEntry]]:
        """Return ``(key, entry)`` pairs for ``env_id``, sorted by key."""
        return [
            (key, self.entries[key])
            for key in sorted(self.entries)
            if self.entries[key].env_id == env_id
        ]


def parse_ref(reference: str) -> tuple[str, str]:
    """Split ``name@tag``; a reference without ``@`` gets the tag ``latest``."""
    name, sep, tag = reference.partition("@")
    if not sep:
        return reference, "latest"
    return name, tag