from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .exceptions import ProjectError

PROJECT_VERSION_FILE = "ProjectSettings/ProjectVersion.txt"
BUILDS_DIRNAME = "Builds"
LOGS_DIRNAME = "Logs"

_EDITOR_VERSION_RE = re.compile(r"^m_EditorVersion:\s*(\S+)\s*$", re.MULTILINE)


@dataclass(frozen=True)
class UnityProject:
    root: Path

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "UnityProject":
        root = Path(path).expanduser().resolve()
        if not root.is_dir():
            raise ProjectError(f"Project directory does not exist: {root}", path=root)
        if not (root / PROJECT_VERSION_FILE).is_file():
            raise ProjectError(
                f"Not a Unity project (missing {PROJECT_VERSION_FILE}): {root}",
                path=root,
            )
        return cls(root=root)

    @property
    def version_file(self) -> Path:
        return self.root / PROJECT_VERSION_FILE

    def editor_version(self) -> Optional[str]:
        try:
            text = self.version_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProjectError(
                f"Failed to read {self.version_file}: {exc}", path=self.root
            ) from exc
        match = _EDITOR_VERSION_RE.search(text)
        return match.group(1) if match else None

    def default_output_dir(self, output_type: str, target_alias: str) -> Path:
        return self.root / BUILDS_DIRNAME / output_type / target_alias

    def resolve_output_dir(
        self, output: Optional[Path], output_type: str, target_alias: str
    ) -> Path:
        if output is None:
            path = self.default_output_dir(output_type, target_alias)
        else:
            path = Path(output).expanduser()
            if not path.is_absolute():
                path = Path.cwd() / path
            path = path.resolve()
        if path == self.root:
            raise ProjectError(
                f"Output directory cannot be the same as the project directory: {self.root}",
                path=self.root,
            )
        return path

    def resolve_log_path(self, log_file: Union[str, Path]) -> Path:
        """Bare file names go to the project's Logs directory."""
        log_path = Path(log_file).expanduser()
        if not log_path.name:
            raise ProjectError(f"Invalid log file name: {log_file}", path=self.root)
        if log_path == Path(log_path.name):
            return self.root / LOGS_DIRNAME / log_path.name
        if not log_path.is_absolute():
            log_path = Path.cwd() / log_path
        return log_path.resolve()


__all__ = ["PROJECT_VERSION_FILE", "UnityProject"]
