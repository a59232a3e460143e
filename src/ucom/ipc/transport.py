"""Filesystem transport for the command/result protocol.

Every message is one immutable, uniquely named file. Files are created by an
atomic rename and only ever deleted, never edited, so no locking is needed.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..core.exceptions import TransportError
from ..core.logging_utils import log_event
from ..core.utils import atomic_write

if TYPE_CHECKING:
    from ..core.config import IpcConfig

logger = logging.getLogger(__name__)

MESSAGE_SUFFIX = ".json"
CLAIMED_SUFFIX = ".claimed"
ANSWERED_SUFFIX = ".answered"
RESULT_PREFIX = "build-"


def command_filename(command_id: str) -> str:
    return f"{command_id}{MESSAGE_SUFFIX}"


def result_filename(command_id: str) -> str:
    return f"{RESULT_PREFIX}{command_id}{MESSAGE_SUFFIX}"


@dataclass(frozen=True)
class IpcPaths:
    command_dir: Path
    result_dir: Path
    heartbeat_file: Path

    @classmethod
    def for_project(cls, project_root: Path, config: "IpcConfig") -> "IpcPaths":
        return cls(
            command_dir=project_root / config.command_dir,
            result_dir=project_root / config.result_dir,
            heartbeat_file=project_root / config.heartbeat_file,
        )


class Mailbox:
    """One shared directory of protocol messages."""

    def __init__(self, directory: Path, *, durable: bool = False) -> None:
        self._directory = directory
        self._durable = durable

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"invalid message name: {name!r}")
        return self._directory / name

    def put(self, name: str, text: str) -> Path:
        path = self.path_for(name)
        try:
            atomic_write(path, text, self._durable)
        except OSError as exc:
            raise TransportError(
                f"Failed to write {path}: {exc}", path=self._directory
            ) from exc
        return path

    def read(self, name: str) -> Optional[str]:
        path = self.path_for(name)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def delete(self, name: str) -> bool:
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def names(self, pattern: str = f"*{MESSAGE_SUFFIX}") -> list[str]:
        if not self._directory.is_dir():
            return []
        return sorted(p.name for p in self._directory.glob(pattern) if p.is_file())

    def claim(self, name: str) -> Optional[str]:
        """Take ownership of ``name`` and return its text.

        The file is renamed to ``<name>.claimed``; when it is already gone
        (another trigger claimed it first) ``None`` is returned.
        """
        source = self.path_for(name)
        claimed = self.path_for(name + CLAIMED_SUFFIX)
        try:
            os.rename(source, claimed)
        except FileNotFoundError:
            return None
        return claimed.read_text(encoding="utf-8")

    def release_claim(self, name: str) -> bool:
        return self.delete(name + CLAIMED_SUFFIX)

    def mark_answered(self, name: str) -> None:
        """Turn the claim on ``name`` into an answered marker.

        Markers are never put back by ``unclaim_all``, so once one exists the
        message cannot be processed again, even across an agent restart.
        """
        marker = self.path_for(name + ANSWERED_SUFFIX)
        try:
            os.replace(self.path_for(name + CLAIMED_SUFFIX), marker)
        except FileNotFoundError:
            self.put(name + ANSWERED_SUFFIX, "")
            return
        os.utime(marker)

    def is_answered(self, name: str) -> bool:
        return self.exists(name + ANSWERED_SUFFIX)

    def clear_answered(self, name: str) -> bool:
        return self.delete(name + ANSWERED_SUFFIX)

    def unclaim_all(self) -> list[str]:
        """Put every claimed message back so it is processed again."""
        restored: list[str] = []
        for claimed_name in self.names(f"*{MESSAGE_SUFFIX}{CLAIMED_SUFFIX}"):
            original = claimed_name[: -len(CLAIMED_SUFFIX)]
            try:
                os.replace(self.path_for(claimed_name), self.path_for(original))
            except FileNotFoundError:
                continue
            restored.append(original)
        if restored:
            log_event(
                logger,
                logging.INFO,
                "ipc.mailbox.unclaimed",
                directory=self._directory,
                count=len(restored),
            )
        return restored

    def purge(self, max_age_seconds: float, *, now: Optional[float] = None) -> int:
        """Delete files older than ``max_age_seconds``.

        Claimed messages are skipped: a rename keeps the original mtime, so an
        old claim may belong to a command the agent still holds. The agent
        puts leftover claims back on its next start.
        """
        if not self._directory.is_dir():
            return 0
        current = time.time() if now is None else now
        cutoff = current - max(0.0, max_age_seconds)
        removed = 0
        for path in self._directory.iterdir():
            if not path.is_file() or path.name.endswith(CLAIMED_SUFFIX):
                continue
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
        if removed:
            log_event(
                logger,
                logging.DEBUG,
                "ipc.mailbox.purged",
                directory=self._directory,
                removed=removed,
            )
        return removed


__all__ = [
    "MESSAGE_SUFFIX",
    "CLAIMED_SUFFIX",
    "ANSWERED_SUFFIX",
    "IpcPaths",
    "Mailbox",
    "command_filename",
    "result_filename",
]
