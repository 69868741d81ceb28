"""On-disk format of a state's data file.

The manifest is a single versioned JSON document:

    {
      "format": "nonvolatile",
      "version": 1,
      "name": "<state name>",
      "checksum": "sha256:<hex>",
      "items": {"<key>": "<encoded value>", ...}
    }

``checksum`` covers the canonical form of ``items`` so truncation and hand
edits are detected instead of silently loading a partial mapping.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import time
from pathlib import Path
from typing import Dict, Optional

FORMAT_TAG = "nonvolatile"
FORMAT_VERSION = 1


class ManifestError(ValueError):
    """The manifest text does not describe a valid state."""


def items_checksum(items: Dict[str, str]) -> str:
    canonical = json.dumps(items, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def dump_manifest(name: str, items: Dict[str, str]) -> str:
    payload = {
        "format": FORMAT_TAG,
        "version": FORMAT_VERSION,
        "name": name,
        "checksum": items_checksum(items),
        "items": items,
    }
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)


def parse_manifest(text: str) -> Dict[str, str]:
    """Validate manifest text and return its items mapping."""

    try:
        data = json.loads(text)
    except ValueError as e:
        raise ManifestError(f"not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError("manifest root is not an object")
    if data.get("format") != FORMAT_TAG:
        raise ManifestError(f"unknown format tag: {data.get('format')!r}")

    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise ManifestError(f"missing or invalid version: {version!r}")
    if version != FORMAT_VERSION:
        raise ManifestError(f"unsupported manifest version {version} (expected {FORMAT_VERSION})")

    items = data.get("items")
    if not isinstance(items, dict):
        raise ManifestError("items is not an object")
    for key, value in items.items():
        if not isinstance(value, str):
            raise ManifestError(f"item {key!r} is not an encoded string")

    checksum = data.get("checksum")
    if checksum != items_checksum(items):
        raise ManifestError("checksum mismatch")
    return dict(items)


def write_manifest_atomic(path: Path, tmp_path: Path, text: str) -> None:
    """Write ``text`` to ``tmp_path``, fsync, then replace ``path`` with it."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


def backup_file(path: Path) -> Optional[Path]:
    """Copy ``path`` next to itself as ``<name>.bak.<timestamp>``.

    Best effort: returns ``None`` if the copy could not be made.
    """

    ts = time.strftime("%Y%m%d_%H%M%S")
    bak = path.with_name(f"{path.name}.bak.{ts}")
    try:
        shutil.copyfile(path, bak)
    except OSError:
        return None
    return bak
