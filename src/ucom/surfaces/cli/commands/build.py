from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, NoReturn, Optional

import typer

from ....batch import (
    BatchBuild,
    build_batch_command,
    clean_output_directory,
    collect_log_errors,
    format_command_line,
    read_build_report,
    run_batch_build,
)
from ....core.config import BUILD_MODES, INJECT_POLICIES, OUTPUT_TYPES, UcomConfig
from ....core.exceptions import InjectionError, ProjectError
from ....core.logging_utils import log_event
from ....core.project import UnityProject
from ....delegation import DelegationEngine
from ....injection import ScriptInjector
from ....ipc.models import (
    TARGET_ALIASES,
    BuildOptions,
    BuildRequest,
    BuildTarget,
    DelegationPermissions,
    ErrorCode,
    Failed,
    InjectPolicy,
    Outcome,
    Success,
    TimedOut,
    Unavailable,
)
from .utils import format_size

logger = logging.getLogger("ucom.cli")

RaiseExit = Callable[..., NoReturn]
RequireProject = Callable[..., "tuple[UnityProject, UcomConfig]"]

_FLAG_OPTIONS = (
    ("run_player", BuildOptions.AUTO_RUN_PLAYER),
    ("development", BuildOptions.DEVELOPMENT),
    ("show_built_player", BuildOptions.SHOW_BUILT_PLAYER),
    ("allow_debugging", BuildOptions.ALLOW_DEBUGGING),
    ("connect_with_profiler", BuildOptions.CONNECT_WITH_PROFILER),
    ("deep_profiling", BuildOptions.ENABLE_DEEP_PROFILING_SUPPORT),
    ("connect_to_host", BuildOptions.CONNECT_TO_HOST),
)


def collect_build_options(
    names: List[str], **flags: bool
) -> BuildOptions:
    """Combine ``--build-options`` names with the shortcut flags."""
    options = BuildOptions.combine(*(BuildOptions.from_cli_name(n) for n in names))
    for key, option in _FLAG_OPTIONS:
        if flags.get(key):
            options |= option
    return options


def _print_result_stats(outcome: Success) -> None:
    result = outcome.result
    if result.platform_switched:
        typer.echo(
            f"    Platform:     switched {result.original_platform} -> "
            f"{result.switched_to} in {result.platform_switch_time_seconds:.2f}s"
        )
    elif result.platform:
        typer.echo(f"    Platform:     {result.platform}")
    if result.output_path:
        typer.echo(f"    Output path:  {result.output_path}")
    typer.echo(f"    Size:         {format_size(result.total_size)}")
    typer.echo(f"    Build time:   {result.build_time_seconds:.2f}s")
    typer.echo(f"    Errors:       {result.total_errors}")
    typer.echo(f"    Warnings:     {result.total_warnings}")


def _describe_failure(outcome: Outcome) -> str:
    if isinstance(outcome, TimedOut):
        return outcome.message
    if isinstance(outcome, Failed):
        code = outcome.error_code
        if code is not None:
            message = f"Build failed [{code.value}]: {outcome.message}"
            if (code.is_precondition and code is not ErrorCode.BUSY) or (
                code is ErrorCode.PLATFORM_MISMATCH
            ):
                message += "\nPass --force-editor-build to let the editor resolve this."
            return message
        return f"Build failed: {outcome.message}"
    return f"Build failed: {outcome!r}"


def _clean(output_dir: Path, raise_exit: RaiseExit) -> None:
    try:
        removed = clean_output_directory(output_dir)
    except OSError as exc:
        raise_exit(f"Could not clean output directory {output_dir}: {exc}", cause=exc)
    for path in removed:
        typer.echo(f"Removed directory: {path}")


def register_build_commands(
    app: typer.Typer,
    *,
    require_project: RequireProject,
    raise_exit: RaiseExit,
) -> None:
    @app.command(
        "build",
        context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
    )
    def build(
        ctx: typer.Context,
        target: str = typer.Argument(
            ..., help=f"Target platform: {', '.join(TARGET_ALIASES)}"
        ),
        project_dir: Optional[Path] = typer.Argument(
            None, help="Project directory (default: current directory)"
        ),
        output: Optional[Path] = typer.Option(
            None,
            "-o",
            "--output",
            help="Output directory (default: <PROJECT>/Builds/<TYPE>/<TARGET>)",
        ),
        output_type: Optional[str] = typer.Option(
            None, "-t", "--type", help=f"Output type: {', '.join(OUTPUT_TYPES)}"
        ),
        run_player: bool = typer.Option(False, "-r", "--run", help="Run built player"),
        development: bool = typer.Option(
            False, "-d", "--development", help="Build development version"
        ),
        show_built_player: bool = typer.Option(
            False, "-S", "--show", help="Show built player"
        ),
        allow_debugging: bool = typer.Option(
            False, "-D", "--debugging", help="Allow remote script debugging"
        ),
        connect_with_profiler: bool = typer.Option(
            False, "-p", "--profiling", help="Connect to editor profiler"
        ),
        deep_profiling: bool = typer.Option(
            False, "-P", "--deep-profiling", help="Enable deep profiling support"
        ),
        connect_to_host: bool = typer.Option(
            False, "-H", "--connect-host", help="Connect player to editor"
        ),
        build_options: List[str] = typer.Option(
            [], "-O", "--build-options", help="Build option name (repeatable)"
        ),
        build_args: Optional[str] = typer.Option(
            None, "-a", "--build-args", help="Argument string for pre-build methods"
        ),
        clean: bool = typer.Option(
            False, "-C", "--clean", help="Remove unused files from output directory"
        ),
        inject: Optional[str] = typer.Option(
            None,
            "-i",
            "--inject",
            help=f"Build script injection: {', '.join(INJECT_POLICIES)}",
        ),
        mode: Optional[str] = typer.Option(
            None, "-m", "--mode", help=f"Batch build mode: {', '.join(BUILD_MODES)}"
        ),
        build_function: Optional[str] = typer.Option(
            None, "-f", "--build-function", help="Static build method in project"
        ),
        log_file: Optional[Path] = typer.Option(
            None, "-l", "--log-file", help="Log file (default: <PROJECT>/Logs/Build-<TARGET>.log)"
        ),
        quiet: bool = typer.Option(False, "-q", "--quiet", help="Suppress build log output"),
        dry_run: bool = typer.Option(
            False, "-n", "--dry-run", help="Show batch command without executing"
        ),
        force_editor_build: bool = typer.Option(
            False,
            "--force-editor-build",
            help="Let a running editor exit play mode, wait for compilation and switch platforms",
        ),
        no_delegate: bool = typer.Option(
            False, "--no-delegate", help="Never hand the build to a running editor"
        ),
        timeout: Optional[float] = typer.Option(
            None, "--timeout", min=0.1, help="Seconds to wait for a running editor"
        ),
        editor: Optional[Path] = typer.Option(
            None, "--editor", help="Editor executable for batch builds"
        ),
        verbose: bool = typer.Option(False, "-v", "--verbose", help="Log to stderr"),
    ) -> None:
        """Build the project, in a running editor when one is available."""
        project, config = require_project(project_dir, verbose=verbose)

        try:
            build_target = BuildTarget.from_alias(target)
        except ValueError as exc:
            raise_exit(
                f"Unknown target {target!r}; expected one of: {', '.join(TARGET_ALIASES)}",
                cause=exc,
            )
        output_type = (output_type or config.build.output_type).lower()
        if output_type not in OUTPUT_TYPES:
            raise_exit(f"Unknown output type {output_type!r}; expected one of: {', '.join(OUTPUT_TYPES)}")
        mode = (mode or config.build.mode).lower()
        if mode not in BUILD_MODES:
            raise_exit(f"Unknown build mode {mode!r}; expected one of: {', '.join(BUILD_MODES)}")
        try:
            policy = InjectPolicy((inject or config.build.inject).lower())
        except ValueError as exc:
            raise_exit(
                f"Unknown inject policy {inject!r}; expected one of: {', '.join(INJECT_POLICIES)}",
                cause=exc,
            )
        try:
            options = collect_build_options(
                build_options,
                run_player=run_player,
                development=development,
                show_built_player=show_built_player,
                allow_debugging=allow_debugging,
                connect_with_profiler=connect_with_profiler,
                deep_profiling=deep_profiling,
                connect_to_host=connect_to_host,
            )
        except ValueError as exc:
            raise_exit(
                f"{exc}; expected one of: {', '.join(BuildOptions.cli_names())}",
                cause=exc,
            )
        try:
            output_dir = project.resolve_output_dir(output, output_type, build_target.alias)
            log_path = project.resolve_log_path(
                log_file or f"Build-{build_target.alias}.log"
            )
        except ProjectError as exc:
            raise_exit(str(exc), cause=exc)

        extra_args = list(ctx.args)
        editor_path = editor or config.editor.path

        def batch_build() -> BatchBuild:
            if editor_path is None:
                raise_exit(
                    "No editor executable configured; pass --editor, set UCOM_EDITOR "
                    "or editor.path in ucom.yml."
                )
            return BatchBuild(
                editor=editor_path,
                project_root=project.root,
                target=build_target,
                output_dir=output_dir,
                log_file=log_path,
                build_function=build_function or config.build.build_function,
                mode=mode,
                build_options=options,
                build_args=build_args,
                extra_args=tuple(extra_args),
            )

        if dry_run:
            typer.echo(format_command_line(build_batch_command(batch_build())))
            return

        version = project.editor_version() or "unknown"
        typer.echo(
            f"Building Unity {version} {build_target.alias} project in: {project.root}"
        )

        delegate = config.build.delegate and not no_delegate
        if delegate and (extra_args or build_args or build_function):
            # Editor arguments and pre-build hooks only reach a fresh editor.
            log_event(logger, logging.INFO, "build.delegation_skipped", reason="batch-only arguments")
            delegate = False

        if delegate:
            engine = DelegationEngine.from_config(
                project.root, config, inject_policy=policy, timeout_seconds=timeout
            )
            outcome = engine.execute(
                BuildRequest(
                    platform=build_target.value,
                    output_path=output_dir,
                    log_path=log_path,
                    build_options=options,
                    development_build=bool(options & BuildOptions.DEVELOPMENT),
                ),
                DelegationPermissions.forced()
                if force_editor_build
                else DelegationPermissions(),
            )
            if not isinstance(outcome, Unavailable):
                if not isinstance(outcome, Success):
                    raise_exit(_describe_failure(outcome))
                if clean:
                    _clean(output_dir, raise_exit)
                typer.echo("Build succeeded (running editor)")
                if outcome.message:
                    typer.echo(outcome.message)
                _print_result_stats(outcome)
                return
            if not quiet:
                typer.echo(f"No running editor ({outcome.reason}); starting a batch build.")

        batch = batch_build()
        try:
            with ScriptInjector().acquire(project.root, policy):
                returncode = run_batch_build(
                    batch, on_line=None if quiet else typer.echo
                )
        except InjectionError as exc:
            raise_exit(str(exc), cause=exc)
        except OSError as exc:
            raise_exit(f"Failed to start editor {batch.editor}: {exc}", cause=exc)

        if returncode == 0:
            if clean:
                _clean(output_dir, raise_exit)
            typer.echo("Build succeeded")
        else:
            typer.echo("Build failed")
        for line in read_build_report(log_path):
            typer.echo(line)
        if returncode != 0:
            errors = collect_log_errors(log_path)
            if not errors:
                raise_exit(f"No errors found in log: {log_path}")
            if len(errors) == 1:
                raise_exit(errors[0])
            raise_exit("\n".join(f"{i}: {line}" for i, line in enumerate(errors, 1)))


__all__ = ["collect_build_options", "register_build_commands"]
