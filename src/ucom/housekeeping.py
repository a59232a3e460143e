from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .core.logging_utils import log_event
from .ipc.transport import IpcPaths, Mailbox

logger = logging.getLogger(__name__)

DEFAULT_IPC_RETENTION_SECONDS = 60 * 60


@dataclass(frozen=True)
class PurgeSummary:
    commands: int
    results: int

    @property
    def total(self) -> int:
        return self.commands + self.results


def purge_ipc_files(
    paths: IpcPaths,
    retention_seconds: float = DEFAULT_IPC_RETENTION_SECONDS,
    *,
    now: Optional[float] = None,
) -> PurgeSummary:
    """Delete command and result files older than the retention window.

    Files are removed whether or not anyone consumed them, so orphans left
    by a requester or agent that died are eventually collected.
    """
    summary = PurgeSummary(
        commands=Mailbox(paths.command_dir).purge(retention_seconds, now=now),
        results=Mailbox(paths.result_dir).purge(retention_seconds, now=now),
    )
    if summary.total:
        log_event(
            logger,
            logging.INFO,
            "housekeeping.ipc.purged",
            commands=summary.commands,
            results=summary.results,
            retention_seconds=retention_seconds,
        )
    return summary


__all__ = ["DEFAULT_IPC_RETENTION_SECONDS", "PurgeSummary", "purge_ipc_files"]
