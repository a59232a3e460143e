from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from ....core.config import UcomConfig, load_config
from ....core.exceptions import ConfigError, ProjectError
from ....core.logging_utils import enable_stderr_logging, setup_rotating_logger
from ....core.project import UnityProject

logger = logging.getLogger("ucom.cli")


def get_ucom_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("ucom")
    except Exception:
        return "unknown"


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def require_project(
    project_dir: Optional[Path], *, verbose: bool = False
) -> tuple[UnityProject, UcomConfig]:
    """Resolve the project, load its config and attach the log handlers."""
    try:
        project = UnityProject.from_path(project_dir or Path.cwd())
    except ProjectError as exc:
        raise_exit(str(exc), cause=exc)
    try:
        config = load_config(project.root)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)
    try:
        setup_rotating_logger(config.log, project.root)
    except OSError as exc:
        typer.echo(f"Warning: file logging disabled: {exc}", err=True)
    if verbose:
        enable_stderr_logging()
    return project, config


def format_size(num_bytes: int) -> str:
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


__all__ = ["format_size", "get_ucom_version", "raise_exit", "require_project"]
