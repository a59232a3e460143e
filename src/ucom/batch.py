"""Fallback path: build by launching a fresh editor in batch mode."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from .core.logging_utils import log_event
from .ipc.models import BuildOptions, BuildTarget

logger = logging.getLogger(__name__)

BUILD_OUTPUT_ARG = "--ucom-build-output"
BUILD_TARGET_ARG = "--ucom-build-target"
BUILD_OPTIONS_ARG = "--ucom-build-options"
PRE_BUILD_ARGS_ARG = "--ucom-pre-build-args"

BUILD_MODE_ARGS: dict[str, tuple[str, ...]] = {
    "batch": ("-batchmode", "-quit"),
    "batch-nogfx": ("-batchmode", "-nographics", "-quit"),
    "editor-quit": ("-quit",),
    "editor": (),
}

REPORT_MARKER = "[Builder] Build Report"
ERROR_MARKERS = (
    "[Builder] Error:",
    "error CS",
    "Fatal Error",
    "Error building Player",
    "error:",
    "BuildFailedException:",
)
DISPOSABLE_OUTPUT_SUFFIXES = (
    "_BurstDebugInformation_DoNotShip",
    "_BackUpThisFolder_ButDontShipItWithYourGame",
)


@dataclass(frozen=True)
class BatchBuild:
    editor: Path
    project_root: Path
    target: BuildTarget
    output_dir: Path
    log_file: Path
    build_function: str
    mode: str = "batch"
    build_options: BuildOptions = BuildOptions.NONE
    build_args: Optional[str] = None
    extra_args: Sequence[str] = field(default_factory=tuple)

    @property
    def follows_log(self) -> bool:
        return self.mode in ("batch", "batch-nogfx")


def build_batch_command(build: BatchBuild) -> list[str]:
    if build.mode not in BUILD_MODE_ARGS:
        raise ValueError(f"Unknown build mode: {build.mode!r}")
    argv = [
        str(build.editor),
        "-projectPath",
        str(build.project_root),
        "-buildTarget",
        build.target.switch_name,
        "-logFile",
        str(build.log_file),
        "-executeMethod",
        build.build_function,
        BUILD_OUTPUT_ARG,
        str(build.output_dir),
        BUILD_TARGET_ARG,
        build.target.value,
    ]
    if build.build_options != BuildOptions.NONE:
        argv.extend([BUILD_OPTIONS_ARG, str(int(build.build_options))])
    if build.build_args:
        argv.extend([PRE_BUILD_ARGS_ARG, build.build_args])
    argv.extend(BUILD_MODE_ARGS[build.mode])
    argv.extend(build.extra_args)
    return argv


def format_command_line(argv: Sequence[str]) -> str:
    return shlex.join(argv)


def _emit_new_lines(
    log_file: Path, offset: int, on_line: Callable[[str], None], *, final: bool = False
) -> int:
    try:
        with log_file.open("rb") as handle:
            handle.seek(offset)
            chunk = handle.read()
    except FileNotFoundError:
        return offset
    if not chunk:
        return offset
    end = len(chunk) if final else chunk.rfind(b"\n") + 1
    if end <= 0:
        return offset
    for line in chunk[:end].decode("utf-8", errors="replace").splitlines():
        on_line(line)
    return offset + end


def run_batch_build(
    build: BatchBuild,
    *,
    on_line: Optional[Callable[[str], None]] = None,
    poll_interval_seconds: float = 0.5,
) -> int:
    """Run the editor to completion and return its exit code.

    In batch modes the editor writes only to its log file, so new log lines
    are forwarded to ``on_line`` while the process runs.
    """
    argv = build_batch_command(build)
    build.log_file.unlink(missing_ok=True)
    build.log_file.parent.mkdir(parents=True, exist_ok=True)
    log_event(
        logger,
        logging.INFO,
        "batch.start",
        project=build.project_root,
        target=build.target.value,
        mode=build.mode,
        log_file=build.log_file,
    )
    follow = on_line is not None and build.follows_log
    started = time.monotonic()
    proc = subprocess.Popen(argv, cwd=str(build.project_root))
    offset = 0
    while True:
        code = proc.poll()
        if follow and on_line is not None:
            offset = _emit_new_lines(
                build.log_file, offset, on_line, final=code is not None
            )
        if code is not None:
            break
        time.sleep(poll_interval_seconds)
    log_event(
        logger,
        logging.INFO,
        "batch.finished",
        returncode=code,
        elapsed_seconds=round(time.monotonic() - started, 2),
    )
    return code


def _read_lines(log_file: Path) -> list[str]:
    try:
        return log_file.read_text(encoding="utf-8", errors="replace").splitlines()
    except FileNotFoundError:
        return []


def read_build_report(log_file: Path) -> list[str]:
    """Lines after the build report marker, up to the first empty line."""
    lines = _read_lines(log_file)
    try:
        start = lines.index(next(l for l in lines if l.startswith(REPORT_MARKER)))
    except StopIteration:
        return []
    report: list[str] = []
    for line in lines[start + 1 :]:
        if not line:
            break
        report.append(line)
    return report


def collect_log_errors(log_file: Path) -> list[str]:
    """Unique error lines from the log, in first-seen order."""
    seen: dict[str, None] = {}
    for line in _read_lines(log_file):
        if any(marker in line for marker in ERROR_MARKERS):
            seen.setdefault(line, None)
    return list(seen)


def clean_output_directory(path: Path) -> list[Path]:
    removed: list[Path] = []
    if not path.is_dir():
        return removed
    for child in sorted(path.iterdir()):
        if child.is_dir() and child.name.endswith(DISPOSABLE_OUTPUT_SUFFIXES):
            shutil.rmtree(child)
            removed.append(child)
    return removed


__all__ = [
    "BUILD_MODE_ARGS",
    "BatchBuild",
    "build_batch_command",
    "format_command_line",
    "run_batch_build",
    "read_build_report",
    "collect_log_errors",
    "clean_output_directory",
]
