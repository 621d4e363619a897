from pathlib import Path

import pytest

from karapace.errors import ExecFailedError
from karapace.export import (
    default_desktop_dir,
    desktop_file_name,
    export_app,
    list_entries,
    list_exported,
    remove_all_entries,
    remove_desktop_entry,
    unexport_all,
    unexport_app,
    write_desktop_entry,
)

TEST_ENV_ID = "abc123def456789012345678901234567890123456789012345678901234"


@pytest.fixture
def apps(tmp_path):
    return tmp_path / ".local" / "share" / "applications"


def _write(apps_dir, name):
    return write_desktop_entry(
        apps_dir, TEST_ENV_ID, name, f"/usr/bin/{name}", "/usr/bin/karapace", "/tmp/store"
    )


def test_export_unexport_roundtrip(apps):
    result = _write(apps, "test-app")
    assert result.desktop_file.exists()
    contents = result.desktop_file.read_text()
    assert "X-Karapace-EnvId=" in contents
    assert "test-app" in contents

    assert list_entries(apps, TEST_ENV_ID) == ["test-app"]

    remove_desktop_entry(apps, TEST_ENV_ID, "test-app")
    assert not result.desktop_file.exists()


def test_unexport_all_cleans_up(apps):
    _write(apps, "app1")
    _write(apps, "app2")
    removed = remove_all_entries(apps, TEST_ENV_ID)
    assert len(removed) == 2
    assert list_entries(apps, TEST_ENV_ID) == []


def test_desktop_file_name_uses_short_id():
    assert desktop_file_name(TEST_ENV_ID, "app") == "karapace-abc123def456-app.desktop"
    assert desktop_file_name("short", "app") == "karapace-short-app.desktop"


def test_entry_contents_and_exec_command(apps):
    result = _write(apps, "editor")
    expected_exec = "/usr/bin/karapace --store /tmp/store enter abc123def456 -- /usr/bin/editor"
    assert result.exec_command == expected_exec
    assert result.name == "editor"
    assert result.desktop_file == apps / "karapace-abc123def456-editor.desktop"
    assert result.desktop_file.read_text() == (
        "[Desktop Entry]\n"
        "Type=Application\n"
        "Name=editor (Karapace abc123def456)\n"
        f"Exec={expected_exec}\n"
        "Icon=editor\n"
        "Terminal=false\n"
        "Categories=Karapace;\n"
        f"X-Karapace-EnvId={TEST_ENV_ID}\n"
        "X-Karapace-Store=/tmp/store\n"
        "Comment=Launched inside Karapace environment abc123def456\n"
    )


def test_list_ignores_other_environments(apps):
    _write(apps, "mine")
    write_desktop_entry(apps, "zzzzzzzzzzzzzzzz", "theirs", "/bin/x", "/bin/k", "/s")
    (apps / "unrelated.txt").write_text("x")
    assert list_entries(apps, TEST_ENV_ID) == ["mine"]
    assert remove_all_entries(apps, TEST_ENV_ID) == ["karapace-abc123def456-mine.desktop"]
    assert list_entries(apps, "zzzzzzzzzzzzzzzz") == ["theirs"]


def test_missing_directory_lists_nothing(tmp_path):
    missing = tmp_path / "nope"
    assert list_entries(missing, TEST_ENV_ID) == []
    assert remove_all_entries(missing, TEST_ENV_ID) == []


def test_remove_missing_entry_leaves_others(apps):
    _write(apps, "keep")
    remove_desktop_entry(apps, TEST_ENV_ID, "absent")
    assert list_entries(apps, TEST_ENV_ID) == ["keep"]


def test_default_desktop_dir_uses_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_desktop_dir() == tmp_path / ".local" / "share" / "applications"


def test_default_desktop_dir_without_home(monkeypatch):
    monkeypatch.delenv("HOME", raising=False)
    with pytest.raises(ExecFailedError):
        default_desktop_dir()


def test_home_based_functions(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    app = export_app(TEST_ENV_ID, "tool", "/usr/bin/tool", "/usr/bin/karapace", "/tmp/store")
    assert app.desktop_file.parent == Path(tmp_path) / ".local" / "share" / "applications"
    export_app(TEST_ENV_ID, "other", "/usr/bin/other", "/usr/bin/karapace", "/tmp/store")
    assert list_exported(TEST_ENV_ID) == ["other", "tool"]

    unexport_app(TEST_ENV_ID, "tool")
    assert list_exported(TEST_ENV_ID) == ["other"]

    assert unexport_all(TEST_ENV_ID) == ["karapace-abc123def456-other.desktop"]
    assert list_exported(TEST_ENV_ID) == []