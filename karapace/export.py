"""Desktop entries that launch applications inside an environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from karapace.errors import ExecFailedError

_SHORT_ID_LEN = 12
_SUFFIX = ".desktop"


@dataclass(frozen=True)
class ExportedApp:
    """An application exported to the host's desktop menu."""

    name: str
    desktop_file: Path
    exec_command: str


def default_desktop_dir() -> Path:
    """Return ``$HOME/.local/share/applications``."""
    home = os.environ.get("HOME")
    if home is None:
        raise ExecFailedError("HOME environment variable not set")
    return Path(home) / ".local" / "share" / "applications"


def _short_id(env_id: str) -> str:
    return env_id[:_SHORT_ID_LEN]


def _desktop_prefix(env_id: str) -> str:
    return f"karapace-{_short_id(env_id)}-"


def desktop_file_name(env_id: str, app_name: str) -> str:
    """Return the desktop file name for an app of an environment."""
    return f"{_desktop_prefix(env_id)}{app_name}{_SUFFIX}"


def write_desktop_entry(
    desktop_dir: str | os.PathLike[str],
    env_id: str,
    app_name: str,
    binary_path: str,
    karapace_bin: str,
    store_path: str,
) -> ExportedApp:
    """Write a desktop entry into ``desktop_dir`` and describe it."""
    directory = Path(desktop_dir)
    short_id = _short_id(env_id)
    directory.mkdir(parents=True, exist_ok=True)

    desktop_path = directory / desktop_file_name(env_id, app_name)
    exec_cmd = f"{karapace_bin} --store {store_path} enter {short_id} -- {binary_path}"

    contents = (
        "[Desktop Entry]\n"
        "Type=Application\n"
        f"Name={app_name} (Karapace {short_id})\n"
        f"Exec={exec_cmd}\n"
        f"Icon={app_name}\n"
        "Terminal=false\n"
        "Categories=Karapace;\n"
        f"X-Karapace-EnvId={env_id}\n"
        f"X-Karapace-Store={store_path}\n"
        f"Comment=Launched inside Karapace environment {short_id}\n"
    )
    desktop_path.write_text(contents, encoding="utf-8")
    try:
        desktop_path.chmod(0o755)
    except OSError:
        pass

    return ExportedApp(name=app_name, desktop_file=desktop_path, exec_command=exec_cmd)


def remove_desktop_entry(
    desktop_dir: str | os.PathLike[str], env_id: str, app_name: str
) -> None:
    """Remove one app's desktop entry if it exists."""
    path = Path(desktop_dir) / desktop_file_name(env_id, app_name)
    if path.exists():
        path.unlink()


def _matching_entries(directory: Path, env_id: str) -> list[Path]:
    if not directory.exists():
        return []
    prefix = _desktop_prefix(env_id)
    return sorted(
        entry
        for entry in directory.iterdir()
        if entry.name.startswith(prefix) and entry.name.endswith(_SUFFIX)
    )


def remove_all_entries(desktop_dir: str | os.PathLike[str], env_id: str) -> list[str]:
    """Remove every desktop entry of an environment; return the removed file names."""
    removed = []
    for entry in _matching_entries(Path(desktop_dir), env_id):
        entry.unlink()
        removed.append(entry.name)
    return removed


def list_entries(desktop_dir: str | os.PathLike[str], env_id: str) -> list[str]:
    """Return the names of the apps an environment has exported."""
    prefix = _desktop_prefix(env_id)
    return [
        entry.name[len(prefix) : -len(_SUFFIX)]
        for entry in _matching_entries(Path(desktop_dir), env_id)
    ]


def export_app(
    env_id: str, app_name: str, binary_path: str, karapace_bin: str, store_path: str
) -> ExportedApp:
    """Export an app into the user's desktop menu."""
    return write_desktop_entry(
        default_desktop_dir(), env_id, app_name, binary_path, karapace_bin, store_path
    )


def unexport_app(env_id: str, app_name: str) -> None:
    """Remove an app from the user's desktop menu."""
    remove_desktop_entry(default_desktop_dir(), env_id, app_name)


def unexport_all(env_id: str) -> list[str]:
    """Remove all of an environment's apps from the user's desktop menu."""
    return remove_all_entries(default_desktop_dir(), env_id)


def list_exported(env_id: str) -> list[str]:
    """List the apps an environment has in the user's desktop menu."""
    return list_entries(default_desktop_dir(), env_id)