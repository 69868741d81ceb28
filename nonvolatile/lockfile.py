"""Cross-process exclusivity via a lock artifact.

The lock is a plain file created with ``O_CREAT | O_EXCL``: the create either
succeeds atomically or fails because the file is already there. There is no
waiting and no retry. The payload (pid, host, time, token) exists for humans
and for ownership checks on release; only the file's existence is the lock.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import time
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from .errors import LockedError, StateIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockInfo:
    """Diagnostic payload stored inside a lock artifact."""

    pid: int
    hostname: str
    acquired_at: str
    token: str

    @staticmethod
    def current() -> "LockInfo":
        return LockInfo(
            pid=os.getpid(),
            hostname=socket.gethostname(),
            acquired_at=time.strftime("%Y-%m-%dT%H:%M:%S"),
            token=uuid.uuid4().hex,
        )

    @staticmethod
    def from_dict(data: dict) -> Optional["LockInfo"]:
        try:
            return LockInfo(
                pid=int(data["pid"]),
                hostname=str(data["hostname"]),
                acquired_at=str(data["acquired_at"]),
                token=str(data["token"]),
            )
        except (KeyError, TypeError, ValueError):
            return None


def read_lock_info(lock_path: Path) -> Optional[LockInfo]:
    """Best-effort read of a lock payload. ``None`` if missing or unreadable."""

    try:
        data = json.loads(Path(lock_path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    return LockInfo.from_dict(data)


class LockHandle:
    """Ownership of one lock artifact. Release is idempotent."""

    def __init__(self, lock_path: Path, info: LockInfo):
        self.lock_path = Path(lock_path)
        self.info = info
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        release_lock(self.lock_path, self.info.token)


def acquire_lock(lock_path: Path) -> LockHandle:
    """Atomically create the lock artifact or fail.

    Raises ``LockedError`` if the artifact already exists and
    ``StateIOError`` for any other filesystem failure.
    """

    lock_path = Path(lock_path)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StateIOError(f"cannot create directory {lock_path.parent}: {e}") from e
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        raise LockedError(lock_path, owner=read_lock_info(lock_path)) from None
    except OSError as e:
        raise StateIOError(f"cannot create lock {lock_path}: {e}") from e

    info = LockInfo.current()
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(asdict(info), f)
    except OSError as e:
        _unlink_quietly(lock_path)
        raise StateIOError(f"cannot write lock {lock_path}: {e}") from e

    logger.debug("Acquired lock %s (pid=%d)", lock_path, info.pid)
    return LockHandle(lock_path, info)


def release_lock(lock_path: Path, token: str) -> None:
    """Remove a lock artifact we own.

    Never raises: a lock that cannot be removed is left behind as a stale lock
    and reported with a warning. If the artifact now carries a different token
    someone else has broken and re-taken it, so it is left alone.
    """

    owner = read_lock_info(lock_path)
    if owner is not None and owner.token != token:
        logger.warning("Lock %s is now held by pid %d; not removing it", lock_path, owner.pid)
        return
    try:
        os.remove(lock_path)
        logger.debug("Released lock %s", lock_path)
    except FileNotFoundError:
        logger.warning("Lock %s vanished before release", lock_path)
    except OSError as e:
        logger.warning("Failed to remove lock %s, it is now stale: %s", lock_path, e)


def break_lock_file(lock_path: Path) -> bool:
    """Unconditionally delete a lock artifact. True if one was removed."""

    try:
        os.remove(lock_path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StateIOError(f"cannot remove lock {lock_path}: {e}") from e
    logger.warning("Broke lock %s", lock_path)
    return True


def _unlink_quietly(path: Path) -> None:
    try:
        os.remove(path)
    except OSError:
        logger.warning("Failed to clean up %s", path)
