"""Remote store backend that speaks a small REST protocol over HTTP.

The server is expected to offer:

* ``PUT``, ``GET`` and ``HEAD`` on ``/objects/<key>``, ``/layers/<key>`` and
  ``/metadata/<key>``;
* ``GET`` on ``/objects/`` (and the other kinds), returning a JSON array of keys;
* ``PUT`` and ``GET`` on ``/registry`` for the registry index.
"""

from __future__ import annotations

import http.client
import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from karapace.errors import HttpError, NotFoundError, SerializationError
from karapace.remote import PROTOCOL_VERSION, BlobKind, RemoteBackend
from karapace.remote_config import RemoteConfig

_log = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 300.0

_KIND_PATHS = {
    BlobKind.OBJECT: "objects",
    BlobKind.LAYER: "layers",
    BlobKind.METADATA: "metadata",
}

_TRANSPORT_ERRORS = (URLError, OSError, http.client.HTTPException)


class HttpBackend(RemoteBackend):
    """A remote store reached over HTTP."""

    def __init__(self, config: RemoteConfig) -> None:
        self.config = config

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers = {"X-Karapace-Protocol": str(PROTOCOL_VERSION)}
        if content_type is not None:
            headers["Content-Type"] = content_type
        if self.config.auth_token is not None:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    def _kind_url(self, kind: BlobKind) -> str:
        return f"{self.config.url}/{_KIND_PATHS[kind]}/"

    def url(self, kind: BlobKind, key: str) -> str:
        """Return the URL of a blob."""
        return f"{self._kind_url(kind)}{key}"

    def put_raw(self, url: str, content_type: str, data: bytes) -> None:
        """Upload ``data`` to ``url`` with the given content type."""
        request = Request(url, data=bytes(data), headers=self._headers(content_type), method="PUT")
        try:
            with urlopen(request, timeout=_TIMEOUT_SECONDS) as response:
                response.read()
        except HTTPError as exc:
            raise HttpError(f"HTTP {exc.code} for {url}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise HttpError(str(exc)) from exc

    def _get(self, url: str) -> bytes:
        request = Request(url, headers=self._headers(), method="GET")
        try:
            with urlopen(request, timeout=_TIMEOUT_SECONDS) as response:
                status = response.status
                body = response.read()
        except HTTPError as exc:
            if exc.code == 404:
                raise NotFoundError(url) from exc
            raise HttpError(f"HTTP {exc.code} for {url}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise HttpError(str(exc)) from exc
        if status == 404:
            raise NotFoundError(url)
        if status >= 400:
            raise HttpError(f"HTTP {status} for {url}")
        return body

    def _head(self, url: str) -> int:
        request = Request(url, headers=self._headers(), method="HEAD")
        try:
            with urlopen(request, timeout=_TIMEOUT_SECONDS) as response:
                return response.status
        except HTTPError as exc:
            return exc.code
        except _TRANSPORT_ERRORS as exc:
            raise HttpError(str(exc)) from exc

    def put_blob(self, kind: BlobKind, key: str, data: bytes) -> None:
        url = self.url(kind, key)
        _log.debug("PUT %s (%d bytes)", url, len(data))
        self.put_raw(url, "application/octet-stream", data)

    def get_blob(self, kind: BlobKind, key: str) -> bytes:
        url = self.url(kind, key)
        _log.debug("GET %s", url)
        return self._get(url)

    def has_blob(self, kind: BlobKind, key: str) -> bool:
        url = self.url(kind, key)
        _log.debug("HEAD %s", url)
        code = self._head(url)
        if code == 200:
            return True
        if code == 404:
            return False
        raise HttpError(f"HTTP {code} for HEAD {url}")

    def list_blobs(self, kind: BlobKind) -> list[str]:
        url = self._kind_url(kind)
        _log.debug("GET %s", url)
        body = self._get(url)
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise HttpError(str(exc)) from exc
        try:
            keys = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SerializationError(str(exc)) from exc
        if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
            raise SerializationError("expected a JSON array of strings")
        return keys

    def put_registry(self, data: bytes) -> None:
        url = f"{self.config.url}/registry"
        _log.debug("PUT %s (%d bytes)", url, len(data))
        self.put_raw(url, "application/json", data)

    def get_registry(self) -> bytes:
        url = f"{self.config.url}/registry"
        _log.debug("GET %s", url)
        return self._get(url)