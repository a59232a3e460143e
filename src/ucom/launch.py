"""Command lines for opening a project in the editor and running its tests."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from .core.logging_utils import log_event
from .ipc.models import TARGET_ALIASES, BuildTarget

logger = logging.getLogger(__name__)

STANDALONE = "standalone"
OPEN_TARGETS: tuple[str, ...] = (STANDALONE,) + TARGET_ALIASES

_TEST_MODES = {"editmode": "EditMode", "playmode": "PlayMode"}
TEST_PLATFORMS: tuple[str, ...] = tuple(_TEST_MODES) + TARGET_ALIASES

# Unity exits with 2 when the run completed but some tests failed.
TESTS_FAILED_EXIT_CODE = 2


def switch_name(open_target: str) -> str:
    """Map an open target (`standalone` or a build alias) to `-buildTarget`'s value."""
    key = open_target.strip().lower()
    if key == STANDALONE:
        return "Standalone"
    return BuildTarget.from_alias(key).switch_name


def unity_test_platform(platform: str) -> str:
    key = platform.strip().lower()
    if key in _TEST_MODES:
        return _TEST_MODES[key]
    return BuildTarget.from_alias(key).value


def default_test_target(platform: str) -> str:
    """Editor and play mode tests open the project on the standalone target."""
    key = platform.strip().lower()
    return STANDALONE if key in _TEST_MODES else key


def build_open_command(
    editor: Path,
    project_root: Path,
    *,
    target: Optional[str] = None,
    quit_after: bool = False,
    extra_args: Sequence[str] = (),
) -> list[str]:
    argv = [str(editor), "-projectPath", str(project_root)]
    if target:
        argv.extend(["-buildTarget", switch_name(target)])
    if quit_after:
        argv.append("-quit")
    argv.extend(extra_args)
    return argv


def build_test_command(
    editor: Path,
    project_root: Path,
    *,
    platform: str,
    results_file: Path,
    target: Optional[str] = None,
    batch_mode: bool = True,
    forget_project_path: bool = False,
    categories: Optional[str] = None,
    tests: Optional[str] = None,
    assemblies: Optional[str] = None,
    extra_args: Sequence[str] = (),
) -> list[str]:
    argv = [
        str(editor),
        "-projectPath",
        str(project_root),
        "-buildTarget",
        switch_name(target or default_test_target(platform)),
        "-runTests",
        "-testPlatform",
        unity_test_platform(platform),
    ]
    if batch_mode:
        argv.append("-batchmode")
    if forget_project_path:
        argv.append("-forgetProjectPath")
    for flag, value in (
        ("-testCategory", categories),
        ("-testFilter", tests),
        ("-assemblyNames", assemblies),
    ):
        if value:
            argv.extend([flag, value])
    argv.extend(["-testResults", str(results_file)])
    argv.extend(extra_args)
    return argv


def run_editor(
    argv: Sequence[str],
    project_root: Path,
    *,
    wait: bool = True,
    quiet: bool = False,
) -> Optional[int]:
    """Start the editor; return its exit code, or ``None`` when not waiting."""
    log_event(logger, logging.INFO, "editor.launch", project=project_root, wait=wait)
    output = subprocess.DEVNULL if quiet else None
    proc = subprocess.Popen(
        list(argv), cwd=str(project_root), stdout=output, stderr=output
    )
    if not wait:
        return None
    code = proc.wait()
    log_event(logger, logging.INFO, "editor.exited", returncode=code)
    return code


__all__ = [
    "OPEN_TARGETS",
    "STANDALONE",
    "TESTS_FAILED_EXIT_CODE",
    "TEST_PLATFORMS",
    "build_open_command",
    "build_test_command",
    "default_test_target",
    "run_editor",
    "switch_name",
    "unity_test_platform",
]
