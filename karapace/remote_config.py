"""Configuration of a remote store endpoint."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path

from karapace.errors import ConfigError, RemoteIOError


def default_config_path() -> Path:
    """Return ``$HOME/.config/karapace/remote.json``."""
    home = os.environ.get("HOME")
    if home is None:
        raise ConfigError("HOME not set")
    return Path(home) / ".config" / "karapace" / "remote.json"


@dataclass(frozen=True)
class RemoteConfig:
    """A remote store URL with an optional bearer token."""

    url: str
    auth_token: str | None = None

    @classmethod
    def from_url(cls, url: str) -> RemoteConfig:
        """Build a config from a URL, dropping trailing slashes."""
        return cls(url=url.rstrip("/"))

    def with_token(self, token: str) -> RemoteConfig:
        """Return a copy that authenticates with ``token``."""
        return replace(self, auth_token=token)

    @classmethod
    def load_default(cls) -> RemoteConfig:
        """Load the config from the default location."""
        return cls.load(default_config_path())

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> RemoteConfig:
        """Load a config from a JSON file."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise RemoteIOError(str(exc)) from exc
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid remote config: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("invalid remote config: expected a JSON object")
        url = data.get("url")
        if not isinstance(url, str):
            raise ConfigError("invalid remote config: missing or invalid field `url`")
        token = data.get("auth_token")
        if token is not None and not isinstance(token, str):
            raise ConfigError("invalid remote config: invalid field `auth_token`")
        return cls(url=url, auth_token=token)

    def save(self, path: str | os.PathLike[str]) -> None:
        """Write the config as pretty JSON, creating parent directories."""
        target = Path(path)
        content = json.dumps({"url": self.url, "auth_token": self.auth_token}, indent=2)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise RemoteIOError(str(exc)) from exc