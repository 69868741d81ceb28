from __future__ import annotations

import sys
from pathlib import Path

import pytest

from nonvolatile import InvalidNameError, default_storage_dir, resolve_location


def test_env_override_wins(isolated_storage_dir: Path) -> None:
    assert default_storage_dir() == isolated_storage_dir.resolve()


@pytest.mark.skipif(sys.platform == "win32", reason="Unix home layout")
def test_home_based_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NONVOLATILE_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_storage_dir() == tmp_path / ".local" / "nonvolatile"

    monkeypatch.delenv("HOME")
    assert default_storage_dir() == Path("/etc/nonvolatile")


@pytest.mark.skipif(sys.platform == "win32", reason="Unix home layout")
def test_blank_override_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NONVOLATILE_DIR", "   ")
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_storage_dir() == tmp_path / ".local" / "nonvolatile"


def test_resolve_location_layout(tmp_path: Path) -> None:
    loc = resolve_location("tool", tmp_path)
    assert loc.base_dir == tmp_path.resolve()
    assert loc.state_dir == tmp_path.resolve() / "tool"
    assert loc.data_path.parent == loc.state_dir
    assert loc.lock_path.parent == loc.state_dir
    assert loc.lock_path != loc.data_path
    assert not loc.state_dir.exists()


def test_same_identity_same_paths(tmp_path: Path) -> None:
    assert resolve_location("a", tmp_path) == resolve_location("a", str(tmp_path))
    assert resolve_location("a", tmp_path) != resolve_location("b", tmp_path)


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b", "x:y", " padded", "tab\tname", "q?"])
def test_invalid_names(name: str, tmp_path: Path) -> None:
    with pytest.raises(InvalidNameError):
        resolve_location(name, tmp_path)


def test_unicode_name_is_fine(tmp_path: Path) -> None:
    assert resolve_location("réglages-1.0", tmp_path).name == "réglages-1.0"


def test_windows_appdata_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import nonvolatile.location as location_mod

    monkeypatch.setattr(location_mod.sys, "platform", "win32")
    monkeypatch.delenv("NONVOLATILE_DIR", raising=False)
    monkeypatch.setenv("APPDATA", str(tmp_path))
    assert default_storage_dir() == tmp_path / "nonvolatile"

    monkeypatch.delenv("APPDATA")
    assert default_storage_dir() == Path("C:/ProgramData") / "nonvolatile"
