from __future__ import annotations

from pathlib import Path
from typing import Optional


class UcomError(Exception):
    """Base error for ucom failures that should be reported, not crash."""


class ConfigError(UcomError):
    """Raised when a configuration file or override is invalid."""


class ProjectError(UcomError):
    """Raised when a directory is not a usable project."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class TransportError(UcomError):
    """Raised when the shared command/result directories cannot be used."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class InvalidRequestError(UcomError):
    """Raised when a build request fails validation before it is sent."""


class InjectionError(UcomError):
    """Base error for companion script injection."""


class ScriptMissing(InjectionError):
    """Raised when injection is disabled and no companion script is present."""


class InjectionConflict(InjectionError):
    """Raised when an existing companion script differs from the bundled one."""

    def __init__(self, message: str, *, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


__all__ = [
    "UcomError",
    "ConfigError",
    "ProjectError",
    "TransportError",
    "InvalidRequestError",
    "InjectionError",
    "ScriptMissing",
    "InjectionConflict",
]
