"""Blob kinds and the interface every remote store backend implements."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

PROTOCOL_VERSION = 1
"""Sent as ``X-Karapace-Protocol`` on every HTTP request."""


class BlobKind(enum.Enum):
    """A category of content-addressable blob in the remote store."""

    OBJECT = "Object"
    LAYER = "Layer"
    METADATA = "Metadata"

    def __str__(self) -> str:
        return self.value


class RemoteBackend(ABC):
    """Storage backend for pushing and pulling environments."""

    @abstractmethod
    def put_blob(self, kind: BlobKind, key: str, data: bytes) -> None:
        """Upload a blob."""

    @abstractmethod
    def get_blob(self, kind: BlobKind, key: str) -> bytes:
        """Download a blob; raise NotFoundError if it is absent."""

    @abstractmethod
    def has_blob(self, kind: BlobKind, key: str) -> bool:
        """Tell whether a blob exists."""

    @abstractmethod
    def list_blobs(self, kind: BlobKind) -> list[str]:
        """List the keys of all blobs of a kind."""

    @abstractmethod
    def put_registry(self, data: bytes) -> None:
        """Upload the registry index."""

    @abstractmethod
    def get_registry(self) -> bytes:
        """Download the registry index."""