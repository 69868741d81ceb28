from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_storage_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the default location at a per-test directory."""
    base = tmp_path / "default_storage"
    monkeypatch.setenv("NONVOLATILE_DIR", str(base))
    return base
