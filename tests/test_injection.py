from pathlib import Path

import pytest

from ucom.core.exceptions import InjectionConflict, InjectionError, ScriptMissing
from ucom.injection import (
    SCRIPT_NAME,
    ScriptInjector,
    bundled_script,
    find_script_copies,
    persistent_script_path,
)
from ucom.ipc.models import InjectPolicy

SCRIPT = "// ucom build script v1\nnamespace Ucom {}\n"


def _auto_roots(project: Path) -> list[Path]:
    return sorted((project / "Assets").glob("ucom-*"))


def test_bundled_script_ships_build_entry_point() -> None:
    text = bundled_script()
    assert "namespace Ucom" in text
    assert "class UnityBuilder" in text
    assert "class EditorCommandWatcher" in text
    assert "ucom-agent.heartbeat" in text


def test_auto_injects_into_unique_directory_and_releases(unity_project: Path) -> None:
    injector = ScriptInjector(SCRIPT)

    with injector.acquire(unity_project, InjectPolicy.AUTO) as handle:
        assert handle.injected
        assert handle.script_path.name == SCRIPT_NAME
        assert handle.script_path.parent.name == "Editor"
        assert handle.script_path.read_text(encoding="utf-8") == SCRIPT
        root = handle.script_path.parent.parent
        root.with_name(root.name + ".meta").write_text("meta", encoding="utf-8")

    assert handle.released
    assert _auto_roots(unity_project) == []


def test_auto_releases_when_the_body_raises(unity_project: Path) -> None:
    injector = ScriptInjector(SCRIPT)
    with pytest.raises(RuntimeError):
        with injector.acquire(unity_project, InjectPolicy.AUTO):
            raise RuntimeError("build exploded")
    assert _auto_roots(unity_project) == []


def test_each_auto_acquisition_uses_its_own_directory(unity_project: Path) -> None:
    injector = ScriptInjector(SCRIPT)
    first = injector.acquire(unity_project, InjectPolicy.AUTO)
    first_root = first.script_path.parent.parent
    first.release()
    second = injector.acquire(unity_project, InjectPolicy.AUTO)
    assert second.script_path.parent.parent != first_root
    second.release()


def test_release_is_idempotent(unity_project: Path) -> None:
    handle = ScriptInjector(SCRIPT).acquire(unity_project, InjectPolicy.AUTO)
    handle.release()
    handle.release()
    assert _auto_roots(unity_project) == []


def test_matching_copy_is_reused_and_never_deleted(unity_project: Path) -> None:
    persistent = persistent_script_path(unity_project)
    persistent.parent.mkdir(parents=True)
    persistent.write_text(SCRIPT, encoding="utf-8")

    with ScriptInjector(SCRIPT).acquire(unity_project, InjectPolicy.AUTO) as handle:
        assert not handle.injected
        assert handle.script_path == persistent

    assert persistent.read_text(encoding="utf-8") == SCRIPT
    assert _auto_roots(unity_project) == []


def test_line_endings_do_not_count_as_a_difference(unity_project: Path) -> None:
    persistent = persistent_script_path(unity_project)
    persistent.parent.mkdir(parents=True)
    persistent.write_bytes(SCRIPT.replace("\n", "\r\n").encode("utf-8"))
    copies = find_script_copies(unity_project, SCRIPT)
    assert [c.matches for c in copies] == [True]


@pytest.mark.parametrize("policy", [InjectPolicy.AUTO, InjectPolicy.PERSISTENT])
def test_differing_copy_is_a_conflict(unity_project: Path, policy: InjectPolicy) -> None:
    persistent = persistent_script_path(unity_project)
    persistent.parent.mkdir(parents=True)
    persistent.write_text("// someone else's edits\n", encoding="utf-8")

    with pytest.raises(InjectionConflict) as excinfo:
        ScriptInjector(SCRIPT).acquire(unity_project, policy)

    assert excinfo.value.path == persistent
    assert persistent.read_text(encoding="utf-8") == "// someone else's edits\n"


def test_leftover_auto_copy_that_differs_is_a_conflict(unity_project: Path) -> None:
    leftover = unity_project / "Assets" / "ucom-old" / "Editor" / SCRIPT_NAME
    leftover.parent.mkdir(parents=True)
    leftover.write_text("// old version\n", encoding="utf-8")
    with pytest.raises(InjectionConflict):
        ScriptInjector(SCRIPT).acquire(unity_project, InjectPolicy.AUTO)
    assert leftover.exists()


def test_persistent_writes_once_and_keeps_the_file(unity_project: Path) -> None:
    injector = ScriptInjector(SCRIPT)
    with injector.acquire(unity_project, InjectPolicy.PERSISTENT) as handle:
        assert handle.script_path == persistent_script_path(unity_project)
    assert persistent_script_path(unity_project).read_text(encoding="utf-8") == SCRIPT

    with injector.acquire(unity_project, InjectPolicy.PERSISTENT) as again:
        assert again.script_path == persistent_script_path(unity_project)


def test_off_requires_an_existing_copy(unity_project: Path) -> None:
    with pytest.raises(ScriptMissing):
        ScriptInjector(SCRIPT).acquire(unity_project, InjectPolicy.OFF)


def test_off_accepts_any_existing_copy(unity_project: Path) -> None:
    persistent = persistent_script_path(unity_project)
    persistent.parent.mkdir(parents=True)
    persistent.write_text("// customized\n", encoding="utf-8")
    with ScriptInjector(SCRIPT).acquire(unity_project, "off") as handle:
        assert handle.script_path == persistent
    assert persistent.exists()


def test_write_failure_is_an_injection_error(tmp_path: Path) -> None:
    project = tmp_path / "Game"
    project.mkdir()
    (project / "Assets").write_text("not a directory", encoding="utf-8")
    with pytest.raises(InjectionError):
        ScriptInjector(SCRIPT).acquire(project, InjectPolicy.PERSISTENT)
