"""Exception hierarchy for nonvolatile.

Every failure the library reports derives from :class:`NonvolatileError`, so
callers that only care about "did it work" can catch a single type.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .lockfile import LockInfo


class NonvolatileError(Exception):
    """Base class for all nonvolatile errors."""


class LockedError(NonvolatileError):
    """The state is held by another live ``State`` (or a stale lock artifact).

    Acquisition never waits. Callers that want retry-with-backoff wrap the
    constructor themselves. A stale lock left behind by a crashed process can
    be cleared with :func:`nonvolatile.break_lock` once the operator has
    confirmed the owner is gone.
    """

    def __init__(self, lock_path: Path, owner: Optional["LockInfo"] = None):
        self.lock_path = Path(lock_path)
        self.owner = owner
        msg = f"state is locked: {self.lock_path}"
        if owner is not None:
            msg += f" (held by pid {owner.pid} on {owner.hostname} since {owner.acquired_at})"
        super().__init__(msg)


class AlreadyExistsError(NonvolatileError):
    """``new`` was asked to create a state whose data file already exists."""


class NotFoundError(NonvolatileError):
    """``load`` was asked for a state that has no data file."""


class CorruptStateError(NonvolatileError):
    """The data file exists but cannot be decoded.

    ``backup_path`` points at a copy of the offending file when one could be
    written, otherwise it is ``None``.
    """

    def __init__(self, message: str, data_path: Path, backup_path: Optional[Path] = None):
        self.data_path = Path(data_path)
        self.backup_path = backup_path
        super().__init__(message)


class StateIOError(NonvolatileError):
    """Underlying filesystem failure (permissions, missing dirs, disk full)."""


class SerializeError(NonvolatileError):
    """A value could not be encoded by the codec."""


class TypeMismatchError(NonvolatileError):
    """A stored value cannot be decoded as the requested type."""


class InvalidNameError(NonvolatileError, ValueError):
    """The state name is not usable as a single path component."""


class InvalidKeyError(NonvolatileError, ValueError):
    """An entry key is not a non-empty ``str``."""


class StateClosedError(NonvolatileError, RuntimeError):
    """A ``State`` was used after ``close()``."""
