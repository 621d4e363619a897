"""Base image resolution, caching and package-manager command helpers."""

from __future__ import annotations

import enum
import os
import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from karapace.errors import ExecFailedError, ImageNotFoundError
from karapace.hashing import Blake3, blake3_hex

LXC_IMAGE_BASE = "https://images.linuxcontainers.org/images"

_READ_CHUNK = 1 << 20


class ImageKind(enum.Enum):
    """The distribution family a base image comes from."""

    OPENSUSE = "opensuse"
    UBUNTU = "ubuntu"
    DEBIAN = "debian"
    FEDORA = "fedora"
    ARCH = "arch"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ImageSource:
    """Where a base image comes from.

    ``detail`` is the variant, codename, version or URL, depending on ``kind``;
    it is None for Arch Linux.
    """

    kind: ImageKind
    detail: str | None = None


@dataclass(frozen=True)
class ResolvedImage:
    """An image name resolved to its source, cache key and display name."""

    source: ImageSource
    cache_key: str
    display_name: str


def _entry(kind: ImageKind, detail: str | None, key: str, display: str) -> ResolvedImage:
    return ResolvedImage(ImageSource(kind, detail), key, display)


_KNOWN_IMAGES: tuple[tuple[tuple[str, ...], ResolvedImage], ...] = (
    (
        ("rolling", "opensuse", "opensuse/tumbleweed", "tumbleweed"),
        _entry(ImageKind.OPENSUSE, "tumbleweed", "opensuse-tumbleweed", "openSUSE Tumbleweed"),
    ),
    (
        ("opensuse/leap", "leap"),
        _entry(ImageKind.OPENSUSE, "15.6", "opensuse-leap-15.6", "openSUSE Leap 15.6"),
    ),
    (
        ("ubuntu", "ubuntu/24.04", "ubuntu/noble"),
        _entry(ImageKind.UBUNTU, "noble", "ubuntu-noble", "Ubuntu 24.04 (Noble)"),
    ),
    (
        ("ubuntu/22.04", "ubuntu/jammy"),
        _entry(ImageKind.UBUNTU, "jammy", "ubuntu-jammy", "Ubuntu 22.04 (Jammy)"),
    ),
    (
        ("debian", "debian/bookworm"),
        _entry(ImageKind.DEBIAN, "bookworm", "debian-bookworm", "Debian Bookworm"),
    ),
    (
        ("debian/trixie",),
        _entry(ImageKind.DEBIAN, "trixie", "debian-trixie", "Debian Trixie"),
    ),
    (
        ("fedora", "fedora/41"),
        _entry(ImageKind.FEDORA, "41", "fedora-41", "Fedora 41"),
    ),
    (
        ("fedora/40",),
        _entry(ImageKind.FEDORA, "40", "fedora-40", "Fedora 40"),
    ),
    (
        ("fedora/42",),
        _entry(ImageKind.FEDORA, "42", "fedora-42", "Fedora 42"),
    ),
    (
        ("debian/sid",),
        _entry(ImageKind.DEBIAN, "sid", "debian-sid", "Debian Sid"),
    ),
    (
        ("ubuntu/24.10", "ubuntu/oracular"),
        _entry(ImageKind.UBUNTU, "oracular", "ubuntu-oracular", "Ubuntu 24.10 (Oracular)"),
    ),
    (
        ("ubuntu/20.04", "ubuntu/focal"),
        _entry(ImageKind.UBUNTU, "focal", "ubuntu-focal", "Ubuntu 20.04 (Focal)"),
    ),
    (
        ("arch", "archlinux"),
        _entry(ImageKind.ARCH, None, "archlinux", "Arch Linux"),
    ),
)

_ALIASES: dict[str, ResolvedImage] = {
    alias: resolved for aliases, resolved in _KNOWN_IMAGES for alias in aliases
}

_UNKNOWN_HINT = (
    "Supported: rolling, opensuse/tumbleweed, opensuse/leap, "
    "ubuntu, ubuntu/24.04, ubuntu/22.04, ubuntu/20.04, "
    "debian, debian/bookworm, debian/trixie, debian/sid, "
    "fedora, fedora/40, fedora/41, fedora/42, "
    "arch, archlinux, or a URL"
)


def resolve_image(name: str) -> ResolvedImage:
    """Resolve an image alias or URL; raise ImageNotFoundError if unknown."""
    name = name.strip().lower()
    known = _ALIASES.get(name)
    if known is not None:
        return known
    if name.startswith(("http://", "https://")):
        return ResolvedImage(
            source=ImageSource(ImageKind.CUSTOM, name),
            cache_key=f"custom-{blake3_hex(name.encode('utf-8'))}",
            display_name=f"Custom ({name})",
        )
    raise ImageNotFoundError(f"unknown image '{name}'. {_UNKNOWN_HINT}")


def resolve_pinned_image_url(name: str) -> str:
    """Resolve an image name to the download URL of its latest build."""
    return download_url(resolve_image(name).source)


def _lxc_rootfs_url(distro: str, variant: str) -> str:
    return f"{LXC_IMAGE_BASE}/{distro}/{variant}/amd64/default/"


def _build_name(line: str) -> str | None:
    _, found, rest = line.partition('href="')
    if not found:
        return None
    raw = rest.split('"', 1)[0]
    decoded = raw.rstrip("/").replace("%3A", ":")
    if decoded[:1].isdigit() and decoded[:1].isascii() and len(decoded.encode("utf-8")) >= 8:
        return decoded
    return None


def parse_latest_build(body: str, index_url: str) -> str:
    """Pick the newest build directory (e.g. ``20260220_04:20``) from an index page."""
    builds = sorted(b for b in map(_build_name, body.splitlines()) if b is not None)
    if not builds:
        raise ExecFailedError(f"no builds found at {index_url}")
    return builds[-1]


def fetch_latest_build(index_url: str) -> str:
    """Download an image index with curl and return its newest build."""
    try:
        result = subprocess.run(
            ["curl", "-fsSL", "--max-time", "30", index_url],
            capture_output=True,
            check=False,
        )
    except OSError as exc:
        raise ExecFailedError(f"curl failed: {exc}") from exc
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise ExecFailedError(f"failed to fetch image index from {index_url}: {stderr}")
    return parse_latest_build(result.stdout.decode("utf-8", errors="replace"), index_url)


def _build_download_url(index_url: str) -> str:
    build = fetch_latest_build(index_url)
    return f"{index_url}{build.replace(':', '%3A')}/rootfs.tar.xz"


def download_url(source: ImageSource) -> str:
    """Return the rootfs tarball URL for an image source."""
    if source.kind is ImageKind.CUSTOM:
        return source.detail or ""
    if source.kind is ImageKind.ARCH:
        index = _lxc_rootfs_url("archlinux", "current")
    else:
        index = _lxc_rootfs_url(source.kind.value, source.detail or "")
    return _build_download_url(index)


def _chmod_user_rwx(path: Path) -> None:
    try:
        subprocess.run(["chmod", "-R", "u+rwX", str(path)], check=False)
    except OSError:
        pass


class ImageCache:
    """Cache of extracted base image root filesystems under ``<store>/images``."""

    def __init__(self, store_root: str | os.PathLike[str]) -> None:
        self.cache_dir = Path(store_root) / "images"

    def rootfs_path(self, cache_key: str) -> Path:
        """Return the rootfs directory for a cache key."""
        return self.cache_dir / cache_key / "rootfs"

    def is_cached(self, cache_key: str) -> bool:
        """Tell whether an extracted image is present."""
        return (self.rootfs_path(cache_key) / "etc").exists()

    def ensure_image(
        self,
        resolved: ResolvedImage,
        progress: Callable[[str], None],
        offline: bool = False,
    ) -> Path:
        """Return the rootfs of an image, downloading and extracting it if needed."""
        rootfs = self.rootfs_path(resolved.cache_key)
        if self.is_cached(resolved.cache_key):
            progress(f"using cached image: {resolved.display_name}")
            return rootfs

        if offline:
            raise ExecFailedError(
                f"offline mode: base image '{resolved.display_name}' is not cached"
            )

        rootfs.mkdir(parents=True, exist_ok=True)
        entry_dir = self.cache_dir / resolved.cache_key

        progress(f"resolving image URL for {resolved.display_name}...")
        url = download_url(resolved.source)

        tarball = entry_dir / "rootfs.tar.xz"
        progress(f"downloading {url}...")
        try:
            download = subprocess.run(
                ["curl", "-fSL", "--progress-bar", "--max-time", "600", "-o", str(tarball), url],
                check=False,
            )
        except OSError as exc:
            raise ExecFailedError(f"curl download failed: {exc}") from exc
        if download.returncode != 0:
            shutil.rmtree(entry_dir, ignore_errors=True)
            raise ExecFailedError(f"failed to download image from {url}")

        progress("extracting rootfs...")
        try:
            extract = subprocess.run(
                [
                    "tar",
                    "xf",
                    str(tarball),
                    "-C",
                    str(rootfs),
                    "--no-same-owner",
                    "--no-same-permissions",
                    "--exclude=dev/*",
                ],
                check=False,
            )
        except OSError as exc:
            raise ExecFailedError(f"tar extract failed: {exc}") from exc
        if extract.returncode != 0:
            try:
                force_remove(entry_dir)
            except OSError:
                pass
            raise ExecFailedError("failed to extract rootfs tarball")

        # Rootfs tarballs carry root-owned restrictive permissions.
        _chmod_user_rwx(rootfs)
        try:
            tarball.unlink()
        except OSError:
            pass

        progress("computing image digest...")
        digest = compute_image_digest(rootfs)
        (entry_dir / "rootfs.blake3").write_text(digest, encoding="utf-8")

        progress(f"image {resolved.display_name} ready")
        return rootfs

    def verify_image(self, cache_key: str) -> None:
        """Check a cached image against its stored digest.

        An image without a stored digest gets one computed and stored.
        """
        rootfs = self.rootfs_path(cache_key)
        digest_file = self.cache_dir / cache_key / "rootfs.blake3"

        if not digest_file.exists():
            digest_file.write_text(compute_image_digest(rootfs), encoding="utf-8")
            return

        try:
            stored = digest_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ExecFailedError(f"failed to read digest file: {exc}") from exc
        current = compute_image_digest(rootfs)

        if stored.strip() != current.strip():
            raise ExecFailedError(
                f"image integrity check failed for {cache_key}: "
                f"stored digest {stored} != computed {current}"
            )


def _collect_file_entries(base: Path, directory: Path, entries: list[str]) -> None:
    try:
        listing = list(os.scandir(directory))
    except OSError:
        return
    for entry in listing:
        path = Path(entry.path)
        try:
            rel = str(path.relative_to(base))
        except ValueError:
            rel = str(path)
        if entry.is_file(follow_symlinks=False):
            try:
                size = entry.stat(follow_symlinks=False).st_size
            except OSError:
                size = 0
            entries.append(f"{rel}:{size}")
        elif entry.is_dir(follow_symlinks=False):
            entries.append(f"{rel}/")
            _collect_file_entries(base, path, entries)


def compute_image_digest(rootfs: str | os.PathLike[str]) -> str:
    """Return a BLAKE3 digest of an image.

    The sibling ``rootfs.tar.xz`` is hashed if present; otherwise a sorted
    listing of relative paths and file sizes is hashed.
    """
    root = Path(rootfs)
    tarball = root.parent / "rootfs.tar.xz"
    hasher = Blake3()
    if tarball.exists():
        try:
            with tarball.open("rb") as handle:
                for chunk in iter(lambda: handle.read(_READ_CHUNK), b""):
                    hasher.update(chunk)
        except OSError as exc:
            raise ExecFailedError(f"failed to read tarball: {exc}") from exc
        return hasher.hexdigest()

    entries: list[str] = []
    _collect_file_entries(root, root, entries)
    for entry in sorted(entries):
        hasher.update(entry.encode("utf-8", errors="replace"))
    return hasher.hexdigest()


def query_versions_command(pkg_manager: str, packages: Sequence[str]) -> list[str]:
    """Return a command that prints installed versions of ``packages``."""
    if pkg_manager == "apt":
        prefix = ["dpkg-query", "-W", "-f", "${Package}\\t${Version}\\n"]
    elif pkg_manager in ("dnf", "zypper"):
        prefix = ["rpm", "-q", "--qf", "%{NAME}\\t%{VERSION}-%{RELEASE}\\n"]
    elif pkg_manager == "pacman":
        prefix = ["pacman", "-Q"]
    else:
        return []
    return [*prefix, *packages]


def parse_version_output(pkg_manager: str, output: str) -> list[tuple[str, str]]:
    """Parse version query output into ``(name, version)`` pairs."""
    separator = " " if pkg_manager == "pacman" else "\t"
    results = []
    for raw in output.split("\n"):
        line = raw.strip()
        if not line:
            continue
        parts = line.split(separator, 1)
        if len(parts) == 2:
            results.append((parts[0], parts[1]))
    return results


def force_remove(path: str | os.PathLike[str]) -> None:
    """Remove a directory tree, first making it writable."""
    target = Path(path)
    if target.exists():
        _chmod_user_rwx(target)
        shutil.rmtree(target)


def detect_package_manager(rootfs: str | os.PathLike[str]) -> str | None:
    """Guess the package manager of a rootfs from the binaries it holds."""
    root = Path(rootfs)

    def has(*names: str) -> bool:
        return any((root / "usr" / "bin" / name).exists() for name in names)

    if has("apt-get", "apt"):
        return "apt"
    if has("dnf", "dnf5"):
        return "dnf"
    if has("zypper"):
        return "zypper"
    if has("pacman"):
        return "pacman"
    return None


def install_packages_command(pkg_manager: str, packages: Sequence[str]) -> list[str]:
    """Return a non-interactive install command for ``packages``."""
    if not packages:
        return []
    prefixes = {
        "apt": ["apt-get", "install", "-y", "--no-install-recommends"],
        "dnf": ["dnf", "install", "-y", "--setopt=install_weak_deps=False"],
        "zypper": ["zypper", "--non-interactive", "install", "--no-recommends"],
        "pacman": ["pacman", "-S", "--noconfirm", "--needed"],
    }
    prefix = prefixes.get(pkg_manager)
    if prefix is None:
        return []
    return [*prefix, *packages]