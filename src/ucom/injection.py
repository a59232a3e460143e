"""Companion script injection.

The agent and the batch build entry point live in a script that must exist
inside the project's ``Assets`` folder. Depending on the policy the script is
injected for the duration of one operation (``auto``), installed for good
(``persistent``), or expected to be there already (``off``).
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import TracebackType
from typing import Optional, Type, Union

from .core.exceptions import InjectionConflict, InjectionError, ScriptMissing
from .core.logging_utils import log_event
from .core.utils import atomic_write
from .ipc.models import InjectPolicy

logger = logging.getLogger(__name__)

SCRIPT_NAME = "UcomBuilder.cs"
SCRIPT_SUBDIR = "Editor"
PERSISTENT_SCRIPT_ROOT = Path("Assets/Plugins/ucom")
AUTO_SCRIPT_ROOT_PREFIX = "ucom-"
ASSETS_DIRNAME = "Assets"
META_SUFFIX = ".meta"


def bundled_script() -> str:
    script = resources.files("ucom") / "templates" / SCRIPT_NAME
    return script.read_text(encoding="utf-8")


def _normalize(text: str) -> str:
    return text.replace("\r\n", "\n")


def persistent_script_path(project_root: Path) -> Path:
    return project_root / PERSISTENT_SCRIPT_ROOT / SCRIPT_SUBDIR / SCRIPT_NAME


@dataclass(frozen=True)
class ScriptCopy:
    path: Path
    matches: bool


def find_script_copies(project_root: Path, expected: str) -> list[ScriptCopy]:
    """Locate every companion script ucom could have placed in the project."""
    candidates: list[Path] = []
    persistent = persistent_script_path(project_root)
    if persistent.is_file():
        candidates.append(persistent)
    assets = project_root / ASSETS_DIRNAME
    if assets.is_dir():
        for root in sorted(assets.glob(f"{AUTO_SCRIPT_ROOT_PREFIX}*")):
            script = root / SCRIPT_SUBDIR / SCRIPT_NAME
            if root.is_dir() and script.is_file():
                candidates.append(script)

    wanted = _normalize(expected)
    copies: list[ScriptCopy] = []
    for path in candidates:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            copies.append(ScriptCopy(path=path, matches=False))
            continue
        copies.append(ScriptCopy(path=path, matches=_normalize(text) == wanted))
    return copies


class ScopedInjection:
    """Handle for one acquisition; ``release`` undoes only what it created."""

    def __init__(
        self,
        policy: InjectPolicy,
        script_path: Path,
        *,
        created_root: Optional[Path] = None,
    ) -> None:
        self.policy = policy
        self.script_path = script_path
        self._created_root = created_root
        self._released = False

    @property
    def injected(self) -> bool:
        return self._created_root is not None

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        root = self._created_root
        if root is None:
            return
        log_event(logger, logging.INFO, "injection.release", path=root)
        try:
            if root.exists():
                shutil.rmtree(root)
            root.with_name(root.name + META_SUFFIX).unlink(missing_ok=True)
        except OSError as exc:
            raise InjectionError(f"Could not remove directory: {root}: {exc}") from exc

    def __enter__(self) -> "ScopedInjection":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            self.release()
            return
        try:
            self.release()
        except InjectionError as release_exc:
            log_event(
                logger,
                logging.ERROR,
                "injection.release_failed",
                path=self._created_root,
                exc=release_exc,
            )


class ScriptInjector:
    def __init__(self, script_text: Optional[str] = None) -> None:
        self._script_text = script_text

    @property
    def script_text(self) -> str:
        if self._script_text is None:
            self._script_text = bundled_script()
        return self._script_text

    def acquire(
        self, project_root: Path, policy: Union[InjectPolicy, str]
    ) -> ScopedInjection:
        policy = InjectPolicy(policy)
        copies = find_script_copies(project_root, self.script_text)

        if policy is InjectPolicy.OFF:
            if not copies:
                raise ScriptMissing(
                    "Build script injection is off and no ucom build script was "
                    f"found in {project_root / ASSETS_DIRNAME}."
                )
            return ScopedInjection(policy, copies[0].path)

        conflicts = [copy for copy in copies if not copy.matches]
        if conflicts:
            path = conflicts[0].path
            raise InjectionConflict(
                f"An existing ucom build script differs from this version: {path}. "
                "Update or remove it, or use --inject off to build with it.",
                path=path,
            )
        if copies:
            log_event(
                logger,
                logging.DEBUG,
                "injection.present",
                policy=policy.value,
                path=copies[0].path,
            )
            return ScopedInjection(policy, copies[0].path)

        if policy is InjectPolicy.PERSISTENT:
            target = persistent_script_path(project_root)
            self._write(target)
            return ScopedInjection(policy, target)

        root = project_root / ASSETS_DIRNAME / f"{AUTO_SCRIPT_ROOT_PREFIX}{uuid.uuid4().hex}"
        target = root / SCRIPT_SUBDIR / SCRIPT_NAME
        handle = ScopedInjection(policy, target, created_root=root)
        try:
            self._write(target)
        except InjectionError:
            handle.release()
            raise
        return handle

    def _write(self, target: Path) -> None:
        log_event(logger, logging.INFO, "injection.write", path=target)
        try:
            atomic_write(target, self.script_text)
        except OSError as exc:
            raise InjectionError(f"Failed to write build script {target}: {exc}") from exc


__all__ = [
    "SCRIPT_NAME",
    "PERSISTENT_SCRIPT_ROOT",
    "ScriptCopy",
    "ScopedInjection",
    "ScriptInjector",
    "bundled_script",
    "find_script_copies",
    "persistent_script_path",
]
