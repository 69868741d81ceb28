"""Where a named state lives on disk.

Default base directory, in order:
  1) $NONVOLATILE_DIR (if set)
  2) Windows: %APPDATA%\\nonvolatile, else C:\\ProgramData\\nonvolatile
  3) Linux/macOS: $HOME/.local/nonvolatile, else /etc/nonvolatile

Each state gets its own sub-directory named after the state:

    <base>/<name>/manifest.json      data file
    <base>/<name>/manifest.json.tmp  scratch file for atomic rewrites
    <base>/<name>/~nonvolatile.lock  lock artifact
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .errors import InvalidNameError


_ENV_STORAGE_DIR = "NONVOLATILE_DIR"
_APP_DIR_NAME = "nonvolatile"

DATA_FILENAME = "manifest.json"
TMP_FILENAME = DATA_FILENAME + ".tmp"
LOCK_FILENAME = "~nonvolatile.lock"

# Characters rejected by at least one supported filesystem.
_RESERVED_CHARS = set('<>:"/\\|?*')

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class StateLocation:
    """Resolved on-disk paths for one ``(name, base_dir)`` identity."""

    name: str
    base_dir: Path
    state_dir: Path
    data_path: Path
    tmp_path: Path
    lock_path: Path


def validate_name(name: str) -> str:
    """Return ``name`` unchanged if it is a safe single path component."""

    if not isinstance(name, str) or not name:
        raise InvalidNameError("state name must be a non-empty string")
    if name in {".", ".."}:
        raise InvalidNameError(f"state name {name!r} is reserved")
    if name != name.strip():
        raise InvalidNameError(f"state name {name!r} has leading or trailing whitespace")
    bad = sorted({c for c in name if c in _RESERVED_CHARS or ord(c) < 32})
    if bad:
        raise InvalidNameError(f"state name {name!r} contains reserved characters: {bad!r}")
    return name


def _env_dir(var: str) -> Optional[Path]:
    value = (os.environ.get(var) or "").strip()
    return Path(value).expanduser() if value else None


def default_storage_dir() -> Path:
    """Platform-conventional base directory for states."""

    override = _env_dir(_ENV_STORAGE_DIR)
    if override is not None:
        return override.resolve()

    if sys.platform == "win32":
        base = _env_dir("APPDATA") or Path("C:/ProgramData")
        return base / _APP_DIR_NAME

    home = _env_dir("HOME")
    if home is None:
        return Path("/etc") / _APP_DIR_NAME
    return home / ".local" / _APP_DIR_NAME


def resolve_location(name: str, storage_path: Optional[PathLike] = None) -> StateLocation:
    """Bind a state name (and optional base directory) to concrete paths.

    Pure path arithmetic; nothing is created on disk.
    """

    validate_name(name)
    if storage_path is None:
        base_dir = default_storage_dir()
    else:
        base_dir = Path(storage_path).expanduser().resolve()

    state_dir = base_dir / name
    return StateLocation(
        name=name,
        base_dir=base_dir,
        state_dir=state_dir,
        data_path=state_dir / DATA_FILENAME,
        tmp_path=state_dir / TMP_FILENAME,
        lock_path=state_dir / LOCK_FILENAME,
    )
