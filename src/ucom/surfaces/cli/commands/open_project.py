from __future__ import annotations

from pathlib import Path
from typing import Callable, NoReturn, Optional

import typer

from ....batch import format_command_line
from ....ipc.liveness import check_agent
from ....ipc.transport import IpcPaths
from ....launch import OPEN_TARGETS, build_open_command, run_editor


def register_open_commands(
    app: typer.Typer,
    *,
    require_project: Callable,
    raise_exit: Callable[..., NoReturn],
) -> None:
    @app.command(
        "open",
        context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
    )
    def open_project(
        ctx: typer.Context,
        project_dir: Optional[Path] = typer.Argument(
            None, help="Project directory (default: current directory)"
        ),
        target: Optional[str] = typer.Option(
            None, "-t", "--target", help=f"Active build target: {', '.join(OPEN_TARGETS)}"
        ),
        quit_after: bool = typer.Option(
            False, "-Q", "--quit", help="Close the editor after opening the project"
        ),
        wait: bool = typer.Option(
            False, "-w", "--wait", help="Wait for the editor to exit"
        ),
        quiet: bool = typer.Option(False, "-q", "--quiet", help="Suppress messages"),
        dry_run: bool = typer.Option(
            False, "-n", "--dry-run", help="Show the command without executing"
        ),
        editor: Optional[Path] = typer.Option(None, "--editor", help="Editor executable"),
        verbose: bool = typer.Option(False, "-v", "--verbose", help="Log to stderr"),
    ) -> None:
        """Open the project in the editor."""
        project, config = require_project(project_dir, verbose=verbose)
        if target is not None and target.strip().lower() not in OPEN_TARGETS:
            raise_exit(
                f"Unknown target {target!r}; expected one of: {', '.join(OPEN_TARGETS)}"
            )
        editor_path = editor or config.editor.path
        if editor_path is None:
            raise_exit(
                "No editor executable configured; pass --editor, set UCOM_EDITOR "
                "or editor.path in ucom.yml."
            )
        argv = build_open_command(
            editor_path,
            project.root,
            target=target,
            quit_after=quit_after,
            extra_args=list(ctx.args),
        )
        if dry_run:
            typer.echo(format_command_line(argv))
            return

        paths = IpcPaths.for_project(project.root, config.ipc)
        if check_agent(paths.heartbeat_file, config.ipc.heartbeat_max_age_seconds).live:
            raise_exit(f"An editor is already running this project: {project.root}")
        (project.root / "Assets").mkdir(exist_ok=True)

        if not quiet:
            version = project.editor_version() or "unknown"
            typer.echo(f"Open Unity {version} project in: {project.root}")
        try:
            returncode = run_editor(argv, project.root, wait=wait, quiet=quiet)
        except OSError as exc:
            raise_exit(f"Failed to start editor {editor_path}: {exc}", cause=exc)
        if returncode:
            raise typer.Exit(code=returncode)


__all__ = ["register_open_commands"]
