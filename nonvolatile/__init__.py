"""Persistent, process-exclusive settings stored out of the way.

A state is created with a name, usually the name of the program using it.
Values written with ``State.set`` go straight to a file in a per-user
directory and can be read back by any later process that loads the same name.
Only one ``State`` per name can be open at a time, across all processes.

Default locations (override with ``$NONVOLATILE_DIR`` or the ``*_from``
constructors):

  * Linux/macOS: ``$HOME/.local/nonvolatile/<name>`` (``/etc/nonvolatile`` without $HOME)
  * Windows: ``%APPDATA%\\nonvolatile\\<name>`` (``C:\\ProgramData\\nonvolatile`` without %APPDATA%)
"""

from __future__ import annotations

__version__ = "0.1.0"

from .codec import Codec, JsonCodec
from .errors import (
    AlreadyExistsError,
    CorruptStateError,
    InvalidKeyError,
    InvalidNameError,
    LockedError,
    NonvolatileError,
    NotFoundError,
    SerializeError,
    StateClosedError,
    StateIOError,
    TypeMismatchError,
)
from .location import StateLocation, default_storage_dir, resolve_location
from .lockfile import LockInfo, read_lock_info
from .state import State, break_lock

__all__ = [
    "__version__",
    "State",
    "break_lock",
    "StateLocation",
    "resolve_location",
    "default_storage_dir",
    "LockInfo",
    "read_lock_info",
    "Codec",
    "JsonCodec",
    "NonvolatileError",
    "LockedError",
    "AlreadyExistsError",
    "NotFoundError",
    "CorruptStateError",
    "StateIOError",
    "SerializeError",
    "TypeMismatchError",
    "InvalidNameError",
    "InvalidKeyError",
    "StateClosedError",
]
