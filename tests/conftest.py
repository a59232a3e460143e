"""Test harness configuration.

This repo uses a `src/` layout. Ensure tests always import the in-repo code
rather than an older installed `ucom` package.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 120


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """
    Apply a default per-test timeout to non-integration tests.

    This relies on `pytest-timeout` when installed; if it isn't installed, the
    marker is inert but still documents the intent.
    """
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


@pytest.fixture()
def unity_project(tmp_path: Path) -> Path:
    """A minimal project directory the CLI and engine accept."""
    root = tmp_path / "Game"
    (root / "ProjectSettings").mkdir(parents=True)
    (root / "Assets").mkdir()
    (root / "ProjectSettings" / "ProjectVersion.txt").write_text(
        "m_EditorVersion: 2022.3.10f1\n"
        "m_EditorVersionWithRevision: 2022.3.10f1 (ff3792e53c62)\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture()
def ipc_paths(unity_project: Path):
    from ucom.ipc.transport import IpcPaths

    return IpcPaths(
        command_dir=unity_project / "Temp" / "ucom-commands",
        result_dir=unity_project / "Temp" / "ucom-results",
        heartbeat_file=unity_project / "Temp" / "ucom-agent.heartbeat",
    )
