"""
On-disk cache primitives shared by CRL copies and combined CRL artifacts.

Paths are derived from identity (a SHA-1 of a key string), never from
content. Writes go to a sibling temporary file that is then renamed over the
target, so a concurrent reader sees either the previous or the new complete
file. No locks are taken: racing writers each produce a complete artifact
and the last rename wins.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from cert_trust.errors import CRLWriteFault


def sha1_hex(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def cache_path(directory: Path, key: str, suffix: str) -> Path:
    """Deterministic, collision-resistant location for `key` under `directory`."""
    return directory / f"{sha1_hex(key)}{suffix}"


def modified_at(path: Path) -> datetime | None:
    """Modification time of `path` as an aware UTC datetime, or None if absent."""
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
    except FileNotFoundError:
        return None


def atomic_write(path: Path, data: bytes) -> None:
    """
    Replace the whole content of `path` with `data`.

    Raises CRLWriteFault if the directory cannot be created or written to.
    """
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise CRLWriteFault(f"Could not write {path}: {exc}") from exc
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
