import sys
from pathlib import Path

import pytest

from ucom.launch import (
    build_open_command,
    build_test_command,
    run_editor,
    switch_name,
    unity_test_platform,
)

EDITOR = Path("/opt/Unity/Editor/Unity")


def test_open_command_minimal(tmp_path: Path) -> None:
    assert build_open_command(EDITOR, tmp_path) == [str(EDITOR), "-projectPath", str(tmp_path)]


def test_open_command_with_target_quit_and_extra_args(tmp_path: Path) -> None:
    argv = build_open_command(
        EDITOR, tmp_path, target="android", quit_after=True, extra_args=["-nographics"]
    )
    assert argv[3:] == ["-buildTarget", "Android", "-quit", "-nographics"]


@pytest.mark.parametrize(
    "target, expected",
    [("standalone", "Standalone"), ("Win64", "Win64"), ("macos", "OSXUniversal")],
)
def test_switch_name(target: str, expected: str) -> None:
    assert switch_name(target) == expected


def test_switch_name_rejects_unknown_target() -> None:
    with pytest.raises(ValueError):
        switch_name("switch")


def test_unity_test_platform_names() -> None:
    assert unity_test_platform("editmode") == "EditMode"
    assert unity_test_platform("PlayMode") == "PlayMode"
    assert unity_test_platform("ios") == "iOS"


def test_editmode_test_command(tmp_path: Path) -> None:
    results = tmp_path / "tests-editmode.xml"
    argv = build_test_command(EDITOR, tmp_path, platform="editmode", results_file=results)
    assert argv == [
        str(EDITOR),
        "-projectPath",
        str(tmp_path),
        "-buildTarget",
        "Standalone",
        "-runTests",
        "-testPlatform",
        "EditMode",
        "-batchmode",
        "-testResults",
        str(results),
    ]


def test_player_test_command_with_filters(tmp_path: Path) -> None:
    results = tmp_path / "tests-win64.xml"
    argv = build_test_command(
        EDITOR,
        tmp_path,
        platform="win64",
        results_file=results,
        batch_mode=False,
        forget_project_path=True,
        categories="Fast;Unit",
        tests="Game.Tests.*",
        assemblies="Game.Tests",
        extra_args=["-logFile", "-"],
    )
    assert "-batchmode" not in argv
    assert argv[3:8] == ["-buildTarget", "Win64", "-runTests", "-testPlatform", "StandaloneWindows64"]
    assert argv[8:] == [
        "-forgetProjectPath",
        "-testCategory",
        "Fast;Unit",
        "-testFilter",
        "Game.Tests.*",
        "-assemblyNames",
        "Game.Tests",
        "-testResults",
        str(results),
        "-logFile",
        "-",
    ]


def test_target_override_for_play_mode(tmp_path: Path) -> None:
    argv = build_test_command(
        EDITOR, tmp_path, platform="playmode", results_file=tmp_path / "r.xml", target="linux64"
    )
    assert argv[3:5] == ["-buildTarget", "Linux64"]


def test_run_editor_returns_exit_code(tmp_path: Path) -> None:
    argv = [sys.executable, "-c", "import sys; sys.exit(2)"]
    assert run_editor(argv, tmp_path, quiet=True) == 2


def test_run_editor_without_wait_returns_none(tmp_path: Path) -> None:
    argv = [sys.executable, "-c", "pass"]
    assert run_editor(argv, tmp_path, wait=False) is None
