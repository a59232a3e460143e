from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path


def atomic_write(path: Path, content: str, durable: bool = False) -> None:
    """Write ``content`` to ``path`` so readers never observe a partial file.

    The text goes to a hidden temp file in the same directory and is then
    moved into place with ``os.replace``. With ``durable`` the data and the
    directory entry are fsynced as well.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            if durable:
                handle.flush()
                os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    if durable:
        _fsync_dir(path.parent)


def _fsync_dir(directory: Path) -> None:
    if os.name == "nt":
        return
    fd = os.open(str(directory), os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


__all__ = ["atomic_write", "now_iso"]
