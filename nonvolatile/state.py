"""Named, process-exclusive, file-backed settings.

A ``State`` owns the lock artifact for its identity for as long as it is open.
Every mutation rewrites the whole manifest atomically before returning, so
what is on disk always matches the last successful ``set``/``delete``.

Typical use::

    with State.load_else_create("my_tool") as state:
        state.set("window_width", 900)
        width = state.get("window_width", int)
"""

from __future__ import annotations

import logging
import os
import weakref
from pathlib import Path
from typing import Any, List, NoReturn, Optional, Type, TypeVar

from .codec import Codec, JsonCodec
from .errors import (
    AlreadyExistsError,
    CorruptStateError,
    InvalidKeyError,
    NotFoundError,
    StateClosedError,
    StateIOError,
    TypeMismatchError,
)
from .location import PathLike, StateLocation, resolve_location
from .lockfile import LockHandle, acquire_lock, break_lock_file
from .manifest import ManifestError, backup_file, dump_manifest, parse_manifest, write_manifest_atomic

logger = logging.getLogger(__name__)

T = TypeVar("T")


class State:
    """An open, exclusively held state. Build it with the class methods."""

    def __init__(
        self,
        location: StateLocation,
        items: dict,
        lock: LockHandle,
        codec: Optional[Codec] = None,
    ):
        self._location = location
        self._items: dict = dict(items)
        self._lock = lock
        self._codec: Codec = codec if codec is not None else JsonCodec()
        # Runs on close(), garbage collection or interpreter exit, whichever is first.
        self._finalizer = weakref.finalize(self, lock.release)

    # ------------------------------ lifecycle ------------------------------

    @classmethod
    def new(cls, name: str, *, codec: Optional[Codec] = None) -> "State":
        """Create a new, empty state in the default location."""
        return cls._create(resolve_location(name), codec)

    @classmethod
    def new_from(cls, name: str, storage_path: PathLike, *, codec: Optional[Codec] = None) -> "State":
        """Create a new, empty state under ``storage_path``."""
        return cls._create(resolve_location(name, storage_path), codec)

    @classmethod
    def load(cls, name: str, *, codec: Optional[Codec] = None) -> "State":
        """Open an existing state from the default location."""
        return cls._open(resolve_location(name), codec)

    @classmethod
    def load_from(cls, name: str, storage_path: PathLike, *, codec: Optional[Codec] = None) -> "State":
        """Open an existing state stored under ``storage_path``."""
        return cls._open(resolve_location(name, storage_path), codec)

    @classmethod
    def load_else_create(cls, name: str, *, codec: Optional[Codec] = None) -> "State":
        """``load`` if the state exists, otherwise ``new``.

        Only ``NotFoundError`` triggers the fallback; a locked or corrupt state
        is reported as such.
        """
        return cls._load_else_create(resolve_location(name), codec)

    @classmethod
    def load_else_create_from(
        cls, name: str, storage_path: PathLike, *, codec: Optional[Codec] = None
    ) -> "State":
        return cls._load_else_create(resolve_location(name, storage_path), codec)

    @staticmethod
    def destroy_state(name: str) -> bool:
        """Delete the state ``name`` from the default location.

        Returns True if a data file was removed, False if there was nothing to
        remove. Raises ``LockedError`` while any ``State`` holds it open.
        """
        return _destroy(resolve_location(name))

    @staticmethod
    def destroy_state_from(name: str, storage_path: PathLike) -> bool:
        return _destroy(resolve_location(name, storage_path))

    @classmethod
    def _load_else_create(cls, location: StateLocation, codec: Optional[Codec]) -> "State":
        try:
            return cls._open(location, codec)
        except NotFoundError:
            pass
        try:
            return cls._create(location, codec)
        except AlreadyExistsError:
            # Created by another process after our load attempt.
            return cls._open(location, codec)

    @classmethod
    def _create(cls, location: StateLocation, codec: Optional[Codec]) -> "State":
        if location.data_path.exists():
            raise AlreadyExistsError(f"state {location.name!r} already exists at {location.data_path}")

        lock = acquire_lock(location.lock_path)
        try:
            # Another process may have created it between the check and the lock.
            if location.data_path.exists():
                raise AlreadyExistsError(f"state {location.name!r} already exists at {location.data_path}")
            state = cls(location, {}, lock, codec)
            state._flush()
        except BaseException:
            lock.release()
            raise

        logger.debug("Created state %r at %s", location.name, location.data_path)
        return state

    @classmethod
    def _open(cls, location: StateLocation, codec: Optional[Codec]) -> "State":
        if not location.data_path.is_file():
            raise NotFoundError(f"state {location.name!r} not found at {location.data_path}")

        lock = acquire_lock(location.lock_path)
        try:
            items = _read_items(location)
            state = cls(location, items, lock, codec)
        except BaseException:
            lock.release()
            raise

        logger.debug("Loaded state %r (%d items) from %s", location.name, len(items), location.data_path)
        return state

    def close(self) -> None:
        """Release the lock. Data is already on disk. Safe to call twice."""
        self._finalizer()

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def __enter__(self) -> "State":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------ accessors ------------------------------

    @property
    def name(self) -> str:
        return self._location.name

    @property
    def location(self) -> StateLocation:
        return self._location

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and write the state out immediately.

        Raises ``SerializeError`` if the codec rejects the value (nothing is
        changed) and ``StateIOError`` if the write fails. After a failed write
        the in-memory value is already updated and the disk state is unknown.
        """
        self._check_open()
        _check_key(key)
        encoded = self._codec.encode(value)
        self._items[key] = encoded
        self._flush()

    def get(self, key: str, type_: Type[T] = object, default: Optional[T] = None) -> Optional[T]:
        """Return the value stored under ``key`` decoded as ``type_``.

        A missing key and a value that does not decode as ``type_`` both give
        ``default``.
        """
        self._check_open()
        _check_key(key)
        encoded = self._items.get(key)
        if encoded is None:
            return default
        try:
            return self._codec.decode(encoded, type_)
        except (TypeMismatchError, ValueError):
            return default

    def has(self, key: str) -> bool:
        self._check_open()
        _check_key(key)
        return key in self._items

    def delete(self, key: str) -> None:
        """Remove ``key`` if present (missing keys are fine) and write out."""
        self._check_open()
        _check_key(key)
        self._items.pop(key, None)
        self._flush()

    def keys(self) -> List[str]:
        self._check_open()
        return sorted(self._items)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key != "" and self.has(key)

    def __len__(self) -> int:
        self._check_open()
        return len(self._items)

    def __repr__(self) -> str:
        status = "closed" if self.closed else "open"
        return f"State(name={self.name!r}, path={str(self._location.data_path)!r}, {status})"

    # ------------------------------ internals ------------------------------

    def _check_open(self) -> None:
        if self.closed:
            raise StateClosedError(f"state {self.name!r} is closed")

    def _flush(self) -> None:
        text = dump_manifest(self._location.name, self._items)
        try:
            write_manifest_atomic(self._location.data_path, self._location.tmp_path, text)
        except OSError as e:
            raise StateIOError(f"failed to write {self._location.data_path}: {e}") from e
        logger.debug("Flushed state %r (%d items)", self.name, len(self._items))


def _check_key(key: object) -> None:
    if not isinstance(key, str):
        raise InvalidKeyError(f"key must be str, got {type(key).__name__}")
    if not key:
        raise InvalidKeyError("key must be non-empty")


def _read_items(location: StateLocation) -> dict:
    try:
        text = location.data_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise NotFoundError(f"state {location.name!r} not found at {location.data_path}") from None
    except UnicodeDecodeError as e:
        _raise_corrupt(location, f"not UTF-8 text: {e}", e)
    except OSError as e:
        raise StateIOError(f"failed to read {location.data_path}: {e}") from e

    try:
        return parse_manifest(text)
    except ManifestError as e:
        _raise_corrupt(location, str(e), e)


def _raise_corrupt(location: StateLocation, reason: str, cause: Exception) -> NoReturn:
    backup = backup_file(location.data_path)
    logger.warning(
        "State %r at %s is corrupt (%s); backup: %s",
        location.name,
        location.data_path,
        reason,
        backup,
    )
    raise CorruptStateError(
        f"state {location.name!r} at {location.data_path} is corrupt: {reason}",
        data_path=location.data_path,
        backup_path=backup,
    ) from cause


def _destroy(location: StateLocation) -> bool:
    if not location.state_dir.is_dir():
        return False

    lock = acquire_lock(location.lock_path)
    try:
        removed = _remove_if_exists(location.data_path)
        _remove_if_exists(location.tmp_path)
    finally:
        lock.release()

    try:
        if not any(location.state_dir.iterdir()):
            location.state_dir.rmdir()
    except OSError as e:
        logger.warning("Could not remove state directory %s: %s", location.state_dir, e)

    logger.debug("Destroyed state %r at %s (data removed: %s)", location.name, location.state_dir, removed)
    return removed


def _remove_if_exists(path: Path) -> bool:
    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StateIOError(f"failed to remove {path}: {e}") from e
    return True


def break_lock(name: str, storage_path: Optional[PathLike] = None) -> bool:
    """Remove a stale lock artifact left by a process that died.

    Only use this once the holder named in ``LockedError.owner`` is known to be
    gone; breaking a live lock lets two ``State`` objects write the same file.
    """
    return break_lock_file(resolve_location(name, storage_path).lock_path)
