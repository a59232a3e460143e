from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, NoReturn, Optional

import typer

from ....core.exceptions import InjectionError
from ....injection import ScriptInjector, persistent_script_path
from ....ipc.liveness import check_agent
from ....ipc.models import InjectPolicy
from ....ipc.transport import IpcPaths


def register_editor_commands(
    editor_app: typer.Typer,
    *,
    require_project: Callable,
    raise_exit: Callable[..., NoReturn],
) -> None:
    @editor_app.command("status")
    def editor_status(
        project_dir: Optional[Path] = typer.Argument(None, help="Project directory"),
        output_json: bool = typer.Option(False, "--json", help="Emit JSON"),
        verbose: bool = typer.Option(False, "-v", "--verbose", help="Log to stderr"),
    ) -> None:
        """Report whether a running editor is accepting build commands."""
        project, config = require_project(project_dir, verbose=verbose)
        paths = IpcPaths.for_project(project.root, config.ipc)
        liveness = check_agent(
            paths.heartbeat_file, config.ipc.heartbeat_max_age_seconds
        )
        if output_json:
            payload = {"project": str(project.root), **liveness.to_dict()}
            typer.echo(json.dumps(payload, indent=2))
            return
        if liveness.live:
            typer.echo(
                f"Editor agent: live (heartbeat {liveness.age_seconds:.1f}s old)"
            )
            phase = (liveness.details or {}).get("phase")
            if phase:
                typer.echo(f"Phase: {phase}")
        else:
            typer.echo(f"Editor agent: not running ({liveness.reason})")

    @editor_app.command("install")
    def editor_install(
        project_dir: Optional[Path] = typer.Argument(None, help="Project directory"),
        verbose: bool = typer.Option(False, "-v", "--verbose", help="Log to stderr"),
    ) -> None:
        """Install the ucom build script into the project permanently."""
        project, _ = require_project(project_dir, verbose=verbose)
        existed = persistent_script_path(project.root).exists()
        try:
            with ScriptInjector().acquire(project.root, InjectPolicy.PERSISTENT) as handle:
                script_path = handle.script_path
        except InjectionError as exc:
            raise_exit(str(exc), cause=exc)
        if existed or script_path != persistent_script_path(project.root):
            typer.echo(f"Build script already installed: {script_path}")
        else:
            typer.echo(f"Installed build script: {script_path}")
