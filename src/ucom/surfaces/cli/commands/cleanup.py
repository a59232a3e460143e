from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import typer

from ....housekeeping import purge_ipc_files
from ....ipc.transport import IpcPaths


def register_cleanup_commands(
    cleanup_app: typer.Typer,
    *,
    require_project: Callable,
) -> None:
    @cleanup_app.command("ipc")
    def cleanup_ipc(
        project_dir: Optional[Path] = typer.Argument(None, help="Project directory"),
        max_age: Optional[float] = typer.Option(
            None,
            "--max-age",
            min=0,
            help="Delete command and result files older than this many seconds.",
        ),
        verbose: bool = typer.Option(False, "-v", "--verbose", help="Log to stderr"),
    ) -> None:
        """Delete stale command and result files under Temp/."""
        project, config = require_project(project_dir, verbose=verbose)
        paths = IpcPaths.for_project(project.root, config.ipc)
        retention = config.ipc.retention_seconds if max_age is None else max_age
        summary = purge_ipc_files(paths, retention)
        typer.echo(
            "IPC cleanup: "
            f"commands={summary.commands} results={summary.results} "
            f"max_age={retention:g}s"
        )
