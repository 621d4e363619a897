# karapace

Building blocks for sharing and running deterministic Linux environments:

- **Remote store client** (`karapace.http_backend`, `karapace.remote`,
  `karapace.remote_config`): upload and download content-addressed blobs
  (objects, layers, metadata) and a registry index over a small HTTP API.
- **Registry** (`karapace.registry`): map `name@tag` references to
  environment identifiers.
- **Base images** (`karapace.image`): resolve image names such as `rolling`,
  `ubuntu/24.04` or `fedora/41` to download sources, fetch, cache and verify
  root filesystems, and build package-manager commands.
- **Desktop launchers** (`karapace.export`): write, list and remove
  `.desktop` files that start an application inside an environment.
- **Hashing** (`karapace.hashing`): a pure-Python BLAKE3 hasher (`Blake3`,
  `blake3_hex`) with the standard 32-byte output.

## Installation

```
pip install .
```

Requires Python 3.10 or later and has no third-party dependencies.
Downloading and extracting images runs the `curl`, `tar` and `chmod` programs.

## Remote store

```python
from karapace.remote_config import RemoteConfig
from karapace.http_backend import HttpBackend
from karapace.remote import BlobKind

config = RemoteConfig.from_url("https://store.example.com/v1/").with_token("token")
backend = HttpBackend(config)

backend.put_blob(BlobKind.OBJECT, "abc123", b"payload")
assert backend.has_blob(BlobKind.OBJECT, "abc123")
data = backend.get_blob(BlobKind.OBJECT, "abc123")
keys = backend.list_blobs(BlobKind.OBJECT)
```

`RemoteConfig.from_url` drops trailing slashes. Every request carries an
`X-Karapace-Protocol: 1` header and, if a token is set, an
`Authorization: Bearer <token>` header. The server is expected to answer:

| Method | Path                | Meaning                          |
|--------|---------------------|----------------------------------|
| PUT    | `/<kind>/<key>`     | upload a blob                    |
| GET    | `/<kind>/<key>`     | download a blob                  |
| HEAD   | `/<kind>/<key>`     | check whether a blob exists      |
| GET    | `/<kind>/`          | JSON array of keys               |
| PUT    | `/registry`         | upload the registry index        |
| GET    | `/registry`         | download the registry index      |

where `<kind>` is `objects`, `layers` or `metadata`. A 404 on a GET raises
`NotFoundError`; other failures raise `HttpError`.

Other stores can be plugged in by subclassing `karapace.remote.RemoteBackend`
and implementing `put_blob`, `get_blob`, `has_blob`, `list_blobs`,
`put_registry` and `get_registry`.

A config is saved and loaded as JSON with `RemoteConfig.save(path)` and
`RemoteConfig.load(path)`; `RemoteConfig.load_default()` reads
`$HOME/.config/karapace/remote.json`.

## Registry

```python
from karapace.registry import Registry, RegistryEntry, parse_ref

registry = Registry()
registry.publish("my-env@latest", RegistryEntry(
    env_id="abc123", short_id="abc123", name="my-env",
    pushed_at="2025-01-01T00:00:00Z",
))
name, tag = parse_ref("my-env")        # ("my-env", "latest")
entry = registry.lookup(f"{name}@{tag}")
payload = registry.to_bytes()          # pretty JSON, keys sorted
same = Registry.from_bytes(payload)
```

`list_keys()` returns keys in sorted order and `find_by_env_id(env_id)`
returns the matching `(key, entry)` pairs.

## Base images

```python
from pathlib import Path
from karapace.image import ImageCache, resolve_image, install_packages_command

resolved = resolve_image("ubuntu/24.04")
cache = ImageCache(Path("/var/tmp/store"))
rootfs = cache.ensure_image(resolved, print, offline=False)
cache.verify_image(resolved.cache_key)

install_packages_command("apt", ["git", "cmake"])
# ['apt-get', 'install', '-y', '--no-install-recommends', 'git', 'cmake']
```

Images are cached under `<store>/images/<cache_key>/rootfs` with a BLAKE3
digest beside them in `rootfs.blake3`. Unknown names raise
`ImageNotFoundError`; an `http://` or `https://` URL is accepted as a custom
image. In offline mode an image that is not cached raises `ExecFailedError`.

`detect_package_manager(rootfs)` recognises apt, dnf, zypper and pacman;
`query_versions_command` and `parse_version_output` build and read the
commands that report installed package versions.

## Desktop launchers

```python
from karapace.export import export_app, list_exported, unexport_all

export_app(env_id, "firefox", "/usr/bin/firefox", "/usr/bin/karapace", "/var/tmp/store")
list_exported(env_id)     # ['firefox']
unexport_all(env_id)
```

Launchers are written to `$HOME/.local/share/applications` as
`karapace-<first 12 characters of env_id>-<app>.desktop`. The functions
`write_desktop_entry`, `list_entries`, `remove_desktop_entry` and
`remove_all_entries` do the same in a directory of your choice.

## Errors

Remote operations raise subclasses of `karapace.errors.RemoteError`
(`RemoteIOError`, `HttpError`, `SerializationError`, `NotFoundError`,
`ConfigError`, `IntegrityError`); runtime operations raise subclasses of
`karapace.errors.EnvRuntimeError` (`ImageNotFoundError`, `ExecFailedError`, ...).

## What this package does not do

- It has no local content store, so it does not push or pull whole
  environments; it only moves individual blobs and the registry index.
- It does not build, enter or run environments: there are no runtime
  backends or sandboxing here, only image fetching and command construction.
- It has no server side for the HTTP API and no command-line program.

## Running the tests

```
pip install .[test]
pytest
```