import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from karapace.errors import HttpError, NotFoundError, SerializationError
from karapace.http_backend import HttpBackend
from karapace.remote import BlobKind
from karapace.remote_config import RemoteConfig


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):  # noqa: A002
        pass

    def _record(self):
        self.server.captured.append(
            {
                "method": self.command,
                "path": self.path,
                "headers": {k.lower(): v for k, v in self.headers.items()},
            }
        )

    def _reply(self, code, body=b""):
        self.send_response(code)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        if self.command != "HEAD" and body:
            self.wfile.write(body)

    def do_PUT(self):
        self._record()
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length) if length else b""
        if self.path.startswith("/fail/"):
            self._reply(500)
            return
        with self.server.lock:
            self.server.store[self.path] = body
        self._reply(200)

    def do_GET(self):
        self._record()
        if self.path.startswith("/fail/"):
            self._reply(500)
            return
        with self.server.lock:
            value = self.server.store.get(self.path)
        if value is None:
            self._reply(404)
        else:
            self._reply(200, value)

    def do_HEAD(self):
        self._record()
        if self.path.startswith("/fail/"):
            self._reply(500)
            return
        with self.server.lock:
            present = self.path in self.server.store
        self._reply(200 if present else 404)


@pytest.fixture
def server():
    srv = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    srv.store = {}
    srv.captured = []
    srv.lock = threading.Lock()
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    srv.addr = f"http://127.0.0.1:{srv.server_address[1]}"
    yield srv
    srv.shutdown()
    srv.server_close()


def _backend(url, token=None):
    return HttpBackend(RemoteConfig(url=url, auth_token=token))


def test_put_and_get_blob(server):
    backend = _backend(server.addr)
    backend.put_blob(BlobKind.OBJECT, "hash123", b"test data")
    assert backend.get_blob(BlobKind.OBJECT, "hash123") == b"test data"


def test_has_blob_true_and_false(server):
    backend = _backend(server.addr)
    assert backend.has_blob(BlobKind.OBJECT, "missing") is False
    backend.put_blob(BlobKind.OBJECT, "exists", b"data")
    assert backend.has_blob(BlobKind.OBJECT, "exists") is True


def test_get_nonexistent_fails(server):
    backend = _backend(server.addr)
    with pytest.raises(NotFoundError):
        backend.get_blob(BlobKind.OBJECT, "nonexistent")


def test_put_and_get_registry(server):
    backend = _backend(server.addr)
    registry_data = b'{"entries":{}}'
    backend.put_registry(registry_data)
    assert backend.get_registry() == registry_data


def test_get_registry_missing_is_not_found(server):
    backend = _backend(server.addr)
    with pytest.raises(NotFoundError):
        backend.get_registry()


def test_connection_refused_returns_error():
    backend = _backend("http://127.0.0.1:1")
    with pytest.raises(HttpError):
        backend.put_blob(BlobKind.OBJECT, "key", b"data")


def test_multiple_blob_kinds(server):
    backend = _backend(server.addr)
    backend.put_blob(BlobKind.OBJECT, "obj1", b"object-data")
    backend.put_blob(BlobKind.LAYER, "layer1", b"layer-data")
    backend.put_blob(BlobKind.METADATA, "meta1", b"meta-data")
    assert backend.get_blob(BlobKind.OBJECT, "obj1") == b"object-data"
    assert backend.get_blob(BlobKind.LAYER, "layer1") == b"layer-data"
    assert backend.get_blob(BlobKind.METADATA, "meta1") == b"meta-data"
    assert set(server.store) == {"/objects/obj1", "/layers/layer1", "/metadata/meta1"}


def test_url_layout():
    backend = _backend("http://store.example.com/v1")
    assert backend.url(BlobKind.OBJECT, "abc") == "http://store.example.com/v1/objects/abc"
    assert backend.url(BlobKind.LAYER, "abc") == "http://store.example.com/v1/layers/abc"
    assert backend.url(BlobKind.METADATA, "abc") == "http://store.example.com/v1/metadata/abc"


def test_requests_include_protocol_header(server):
    backend = _backend(server.addr)
    backend.put_blob(BlobKind.OBJECT, "h1", b"data")
    backend.get_blob(BlobKind.OBJECT, "h1")
    backend.has_blob(BlobKind.OBJECT, "h1")
    reqs = server.captured
    assert len(reqs) >= 3
    assert {r["method"] for r in reqs} == {"PUT", "GET", "HEAD"}
    for req in reqs:
        assert req["headers"].get("x-karapace-protocol") == "1"


def test_auth_token_sent_as_bearer_header(server):
    backend = _backend(server.addr, token="token")
    backend.put_blob(BlobKind.OBJECT, "auth1", b"data")
    assert server.captured
    assert server.captured[0]["headers"].get("authorization") == "Bearer token"


def test_no_auth_header_without_token(server):
    backend = _backend(server.addr)
    backend.put_blob(BlobKind.OBJECT, "noauth", b"data")
    assert server.captured
    assert "authorization" not in server.captured[0]["headers"]


def test_content_types(server):
    backend = _backend(server.addr)
    backend.put_blob(BlobKind.OBJECT, "ct", b"data")
    backend.put_registry(b"{}")
    types = [r["headers"].get("content-type") for r in server.captured]
    assert types == ["application/octet-stream", "application/json"]


def test_list_blobs_returns_keys(server):
    backend = _backend(server.addr)
    for key, data in (("a", b"data-a"), ("b", b"data-b"), ("c", b"data-c")):
        backend.put_blob(BlobKind.OBJECT, key, data)
    list_url = f"{server.addr}/objects/"
    backend.put_raw(list_url, "application/json", json.dumps(["a", "b", "c"]).encode())
    assert backend.list_blobs(BlobKind.OBJECT) == ["a", "b", "c"]


def test_list_blobs_invalid_json(server):
    backend = _backend(server.addr)
    backend.put_raw(f"{server.addr}/layers/", "application/json", b"not json")
    with pytest.raises(SerializationError):
        backend.list_blobs(BlobKind.LAYER)


def test_list_blobs_missing_listing_is_not_found(server):
    backend = _backend(server.addr)
    with pytest.raises(NotFoundError):
        backend.list_blobs(BlobKind.METADATA)


def test_large_blob_roundtrip(server):
    backend = _backend(server.addr)
    large = bytes(i % 256 for i in range(1_000_000))
    backend.put_blob(BlobKind.OBJECT, "large", large)
    retrieved = backend.get_blob(BlobKind.OBJECT, "large")
    assert len(retrieved) == len(large)
    assert retrieved == large


def test_server_error_on_get_is_http_error(server):
    backend = _backend(f"{server.addr}/fail")
    with pytest.raises(HttpError, match="HTTP 500"):
        backend.get_blob(BlobKind.OBJECT, "x")


def test_server_error_on_head_is_http_error(server):
    backend = _backend(f"{server.addr}/fail")
    with pytest.raises(HttpError, match="HEAD"):
        backend.has_blob(BlobKind.OBJECT, "x")


def test_server_error_on_put_is_http_error(server):
    backend = _backend(f"{server.addr}/fail")
    with pytest.raises(HttpError):
        backend.put_blob(BlobKind.OBJECT, "x", b"data")