"""Protocol records shared by the requester and the in-editor agent."""

from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from ..core.utils import now_iso


class BuildTarget(str, enum.Enum):
    """Platforms a build can be requested for, by editor build-target name."""

    STANDALONE_OSX = "StandaloneOSX"
    STANDALONE_WINDOWS = "StandaloneWindows"
    STANDALONE_WINDOWS64 = "StandaloneWindows64"
    STANDALONE_LINUX64 = "StandaloneLinux64"
    IOS = "iOS"
    ANDROID = "Android"
    WEBGL = "WebGL"

    @property
    def alias(self) -> str:
        return _TARGET_ALIASES[self]

    @property
    def switch_name(self) -> str:
        """Name the editor expects after `-buildTarget` on its command line."""
        return _SWITCH_NAMES[self]

    @classmethod
    def from_alias(cls, alias: str) -> "BuildTarget":
        key = (alias or "").strip().lower()
        for target, name in _TARGET_ALIASES.items():
            if name == key:
                return target
        raise ValueError(f"Unknown build target alias: {alias!r}")

    @classmethod
    def parse(cls, value: str) -> Optional["BuildTarget"]:
        try:
            return cls(value)
        except ValueError:
            return None


_TARGET_ALIASES = {
    BuildTarget.STANDALONE_OSX: "macos",
    BuildTarget.STANDALONE_WINDOWS: "win32",
    BuildTarget.STANDALONE_WINDOWS64: "win64",
    BuildTarget.STANDALONE_LINUX64: "linux64",
    BuildTarget.IOS: "ios",
    BuildTarget.ANDROID: "android",
    BuildTarget.WEBGL: "webgl",
}

TARGET_ALIASES: tuple[str, ...] = tuple(_TARGET_ALIASES.values())

_SWITCH_NAMES = {
    BuildTarget.STANDALONE_OSX: "OSXUniversal",
    BuildTarget.STANDALONE_WINDOWS: "Win",
    BuildTarget.STANDALONE_WINDOWS64: "Win64",
    BuildTarget.STANDALONE_LINUX64: "Linux64",
    BuildTarget.IOS: "iOS",
    BuildTarget.ANDROID: "Android",
    BuildTarget.WEBGL: "WebGL",
}


class BuildOptions(enum.IntFlag):
    NONE = 0
    DEVELOPMENT = 1
    AUTO_RUN_PLAYER = 4
    SHOW_BUILT_PLAYER = 8
    BUILD_ADDITIONAL_STREAMED_SCENES = 16
    ACCEPT_EXTERNAL_MODIFICATIONS_TO_PLAYER = 32
    CLEAN_BUILD_CACHE = 128
    CONNECT_WITH_PROFILER = 256
    ALLOW_DEBUGGING = 512
    SYMLINK_SOURCES = 1024
    UNCOMPRESSED_ASSET_BUNDLE = 2048
    CONNECT_TO_HOST = 4096
    CUSTOM_CONNECTION_ID = 8192
    BUILD_SCRIPTS_ONLY = 32768
    PATCH_PACKAGE = 65536
    COMPRESS_WITH_LZ4 = 262144
    COMPRESS_WITH_LZ4HC = 524288
    STRICT_MODE = 2097152
    INCLUDE_TEST_ASSEMBLIES = 4194304
    NO_UNIQUE_IDENTIFIER = 8388608
    WAIT_FOR_PLAYER_CONNECTION = 33554432
    ENABLE_CODE_COVERAGE = 67108864
    ENABLE_DEEP_PROFILING_SUPPORT = 268435456
    DETAILED_BUILD_REPORT = 536870912
    SHADER_LIVELINK_SUPPORT = 1073741824

    @classmethod
    def from_cli_name(cls, name: str) -> "BuildOptions":
        key = (name or "").strip().replace("-", "_").upper()
        try:
            return cls[key]
        except KeyError as exc:
            raise ValueError(f"Unknown build option: {name!r}") from exc

    @classmethod
    def cli_names(cls) -> list[str]:
        return [name.lower().replace("_", "-") for name in cls.__members__]

    @classmethod
    def combine(cls, *options: "BuildOptions") -> "BuildOptions":
        flags = cls.NONE
        for option in options:
            flags |= option
        return flags


class CommandKind(str, enum.Enum):
    BUILD = "build"


@dataclass(frozen=True)
class UnknownCommandKind:
    """A command kind this side of the protocol does not understand."""

    name: str

    @property
    def value(self) -> str:
        return self.name


AnyCommandKind = Union[CommandKind, UnknownCommandKind]


def parse_command_kind(value: str) -> AnyCommandKind:
    try:
        return CommandKind(value)
    except ValueError:
        return UnknownCommandKind(value)


class ResultStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


class ErrorCode(str, enum.Enum):
    IN_PLAY_MODE = "IN_PLAY_MODE"
    COMPILING = "COMPILING"
    INVALID_PLATFORM = "INVALID_PLATFORM"
    PLATFORM_MISMATCH = "PLATFORM_MISMATCH"
    PLATFORM_SWITCH_FAILED = "PLATFORM_SWITCH_FAILED"
    BUILD_FAILED = "BUILD_FAILED"
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"
    BUSY = "BUSY"

    @property
    def is_precondition(self) -> bool:
        return self in (ErrorCode.IN_PLAY_MODE, ErrorCode.COMPILING, ErrorCode.BUSY)


class InjectPolicy(str, enum.Enum):
    AUTO = "auto"
    PERSISTENT = "persistent"
    OFF = "off"


def new_command_id() -> str:
    return secrets.token_hex(16)


@dataclass(frozen=True)
class Command:
    id: str
    kind: AnyCommandKind
    platform: str
    output_path: str
    log_path: Optional[str] = None
    build_options: BuildOptions = BuildOptions.NONE
    development_build: bool = False
    force_platform_switch: bool = False
    force_play_mode_exit: bool = False
    created_at: str = field(default_factory=now_iso)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("command id must be a non-empty string")
        if "/" in self.id or "\\" in self.id or self.id in {".", ".."}:
            raise ValueError("command id contains invalid path characters")
        if self.log_path == "":
            object.__setattr__(self, "log_path", None)
        object.__setattr__(self, "build_options", BuildOptions(self.build_options))


@dataclass(frozen=True)
class Result:
    id: str
    status: ResultStatus
    error_code: Optional[ErrorCode] = None
    message: str = ""
    platform_switched: bool = False
    original_platform: str = ""
    switched_to: Optional[str] = None
    build_time_seconds: float = 0.0
    platform_switch_time_seconds: float = 0.0
    output_path: str = ""
    build_result: str = ""
    platform: str = ""
    total_size: int = 0
    total_errors: int = 0
    total_warnings: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("result id must be a non-empty string")
        if self.switched_to == "":
            object.__setattr__(self, "switched_to", None)
        if self.status is ResultStatus.SUCCESS and self.error_code is not None:
            raise ValueError("a successful result must not carry an error code")
        if self.status is not ResultStatus.SUCCESS and self.error_code is None:
            raise ValueError(f"a {self.status.value} result requires an error code")

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCESS

    @classmethod
    def rejection(cls, command_id: str, code: ErrorCode, message: str) -> "Result":
        return cls(
            id=command_id, status=ResultStatus.ERROR, error_code=code, message=message
        )


@dataclass(frozen=True)
class BuildRequest:
    platform: str
    output_path: Path
    log_path: Optional[Path] = None
    build_options: BuildOptions = BuildOptions.NONE
    development_build: bool = False


@dataclass(frozen=True)
class DelegationPermissions:
    force_platform_switch: bool = False
    force_play_mode_exit: bool = False

    @classmethod
    def forced(cls) -> "DelegationPermissions":
        return cls(force_platform_switch=True, force_play_mode_exit=True)


@dataclass(frozen=True)
class Success:
    result: Result
    ok: bool = field(default=True, init=False)
    exit_code: int = field(default=0, init=False)

    @property
    def message(self) -> str:
        return self.result.message


@dataclass(frozen=True)
class Failed:
    """A terminal failure.

    ``error_code`` is ``None`` when the request never reached the agent
    (transport or local validation problems); otherwise it carries the
    agent's rejection code and ``result`` holds the full record.
    """

    message: str
    error_code: Optional[ErrorCode] = None
    result: Optional[Result] = None
    ok: bool = field(default=False, init=False)
    exit_code: int = field(default=1, init=False)

    @property
    def is_transport_failure(self) -> bool:
        return self.error_code is None


@dataclass(frozen=True)
class Unavailable:
    reason: str
    ok: bool = field(default=False, init=False)
    exit_code: int = field(default=1, init=False)


@dataclass(frozen=True)
class TimedOut:
    command_id: str
    timeout_seconds: float
    ok: bool = field(default=False, init=False)
    exit_code: int = field(default=1, init=False)

    @property
    def message(self) -> str:
        return (
            f"No result for command {self.command_id} within "
            f"{self.timeout_seconds:g}s; the editor may still finish the build."
        )


Outcome = Union[Success, Failed, Unavailable, TimedOut]


__all__ = [
    "BuildTarget",
    "TARGET_ALIASES",
    "BuildOptions",
    "CommandKind",
    "UnknownCommandKind",
    "AnyCommandKind",
    "parse_command_kind",
    "ResultStatus",
    "ErrorCode",
    "InjectPolicy",
    "new_command_id",
    "Command",
    "Result",
    "BuildRequest",
    "DelegationPermissions",
    "Success",
    "Failed",
    "Unavailable",
    "TimedOut",
    "Outcome",
]
