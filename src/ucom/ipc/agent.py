"""Reference model of the in-editor agent.

The real agent runs inside the editor process and is shipped as the bundled
companion script. This module models its observable contract so that the
requester side can be tested without an editor:

* ``step`` is a pure transition function ``(state, event, host) -> (state,
  effects)``. The single deferred command lives in ``AgentState.pending``.
* ``execute_build`` turns a ``RunBuild`` effect into exactly one ``Result``.
* ``AgentRuntime`` drives both against the shared directories, the way the
  editor's update loop does.

Precondition order on arrival: interactive session, then compilation, then
platform, then execution. A deferred command re-enters at the platform check.
"""

from __future__ import annotations

import enum
import json
import logging
import os
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Protocol, Union

from ..core.logging_utils import log_event
from ..core.utils import atomic_write, now_iso
from .codec import CodecError, decode_command, encode_result
from .models import (
    BuildTarget,
    Command,
    ErrorCode,
    Result,
    ResultStatus,
    UnknownCommandKind,
)
from .transport import IpcPaths, Mailbox, result_filename

logger = logging.getLogger(__name__)

BUILD_SUCCEEDED = "Succeeded"
DEFAULT_RETENTION_SECONDS = 3600.0


class AgentPhase(str, enum.Enum):
    IDLE = "idle"
    AWAITING_INTERACTIVE_EXIT = "awaiting_interactive_exit"
    AWAITING_COMPILE_FINISH = "awaiting_compile_finish"
    EXECUTING = "executing"


@dataclass(frozen=True)
class AgentState:
    phase: AgentPhase = AgentPhase.IDLE
    pending: Optional[Command] = None


@dataclass(frozen=True)
class HostStatus:
    is_playing: bool = False
    is_compiling: bool = False
    active_platform: str = BuildTarget.STANDALONE_OSX.value
    known_platforms: frozenset[str] = field(
        default_factory=lambda: frozenset(target.value for target in BuildTarget)
    )


@dataclass(frozen=True)
class CommandArrived:
    command: Command


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class BuildFinished:
    result: Result


AgentEvent = Union[CommandArrived, Tick, BuildFinished]


@dataclass(frozen=True)
class WriteResult:
    result: Result


@dataclass(frozen=True)
class ExitPlayMode:
    pass


@dataclass(frozen=True)
class RunBuild:
    command: Command
    switch_platform: bool


AgentEffect = Union[WriteResult, ExitPlayMode, RunBuild]
Transition = tuple[AgentState, list[AgentEffect]]


def _reject(state: AgentState, command: Command, code: ErrorCode, message: str) -> Transition:
    return state, [WriteResult(Result.rejection(command.id, code, message))]


def _from_platform_check(command: Command, host: HostStatus) -> Transition:
    idle = AgentState()
    if command.platform not in host.known_platforms:
        return _reject(
            idle,
            command,
            ErrorCode.INVALID_PLATFORM,
            f"Invalid build platform: {command.platform}",
        )
    needs_switch = command.platform != host.active_platform
    if needs_switch and not command.force_platform_switch:
        return _reject(
            idle,
            command,
            ErrorCode.PLATFORM_MISMATCH,
            f"Editor is in {host.active_platform} mode, but build target is "
            f"{command.platform}. Use --force-editor-build to switch platforms.",
        )
    return (
        AgentState(phase=AgentPhase.EXECUTING, pending=command),
        [RunBuild(command=command, switch_platform=needs_switch)],
    )


def _on_command(state: AgentState, command: Command, host: HostStatus) -> Transition:
    if isinstance(command.kind, UnknownCommandKind):
        return _reject(
            state,
            command,
            ErrorCode.UNKNOWN_COMMAND,
            f"Unknown command: {command.kind.name}",
        )
    if state.phase is not AgentPhase.IDLE:
        held = state.pending.id if state.pending else "unknown"
        return _reject(
            state,
            command,
            ErrorCode.BUSY,
            f"Editor is busy with command {held} ({state.phase.value}); retry later.",
        )
    if host.is_playing:
        if not command.force_play_mode_exit:
            return _reject(
                state,
                command,
                ErrorCode.IN_PLAY_MODE,
                "Unity editor is in Play Mode. Use --force-editor-build to exit play mode.",
            )
        return (
            AgentState(phase=AgentPhase.AWAITING_INTERACTIVE_EXIT, pending=command),
            [ExitPlayMode()],
        )
    if host.is_compiling:
        if not command.force_platform_switch:
            return _reject(
                state,
                command,
                ErrorCode.COMPILING,
                "Unity editor is compiling. Use --force-editor-build to wait for compilation.",
            )
        return AgentState(phase=AgentPhase.AWAITING_COMPILE_FINISH, pending=command), []
    return _from_platform_check(command, host)


def _on_tick(state: AgentState, host: HostStatus) -> Transition:
    if state.pending is None:
        return state, []
    if state.phase is AgentPhase.AWAITING_INTERACTIVE_EXIT and not host.is_playing:
        return _from_platform_check(state.pending, host)
    if state.phase is AgentPhase.AWAITING_COMPILE_FINISH and not host.is_compiling:
        return _from_platform_check(state.pending, host)
    return state, []


def step(state: AgentState, event: AgentEvent, host: HostStatus) -> Transition:
    """Advance the agent by one event. Never touches files or the host."""
    if isinstance(event, CommandArrived):
        return _on_command(state, event.command, host)
    if isinstance(event, Tick):
        return _on_tick(state, host)
    if isinstance(event, BuildFinished):
        if state.phase is not AgentPhase.EXECUTING:
            raise ValueError(f"BuildFinished received while {state.phase.value}")
        return AgentState(), [WriteResult(event.result)]
    raise TypeError(f"unsupported agent event: {event!r}")


@dataclass(frozen=True)
class BuildReport:
    result: str
    platform: str = ""
    output_path: str = ""
    total_size: int = 0
    total_errors: int = 0
    total_warnings: int = 0


class HostPort(Protocol):
    def status(self) -> HostStatus: ...

    def exit_play_mode(self) -> None: ...

    def switch_platform(self, platform: str) -> Optional[str]:
        """Switch the active platform; return an error message on failure."""
        ...

    def build(self, command: Command) -> BuildReport: ...


def execute_build(
    command: Command,
    host: HostPort,
    switch_platform: bool,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> Result:
    """Run one build against ``host`` and describe it as exactly one Result."""
    base = Result(
        id=command.id,
        status=ResultStatus.SUCCESS,
        original_platform=host.status().active_platform,
    )
    if switch_platform:
        started = clock()
        error = host.switch_platform(command.platform)
        if error is not None:
            return replace(
                base,
                status=ResultStatus.FAILED,
                error_code=ErrorCode.PLATFORM_SWITCH_FAILED,
                message=error,
            )
        base = replace(
            base,
            platform_switched=True,
            switched_to=command.platform,
            platform_switch_time_seconds=clock() - started,
        )

    started = clock()
    try:
        report = host.build(command)
    except Exception as exc:
        # The agent must answer every command; nothing crosses the process boundary.
        return replace(
            base,
            status=ResultStatus.FAILED,
            error_code=ErrorCode.BUILD_FAILED,
            message=f"Build exception: {exc}",
            build_time_seconds=clock() - started,
        )
    base = replace(
        base,
        build_time_seconds=clock() - started,
        output_path=report.output_path or command.output_path,
        build_result=report.result,
        platform=report.platform,
        total_size=report.total_size,
        total_errors=report.total_errors,
        total_warnings=report.total_warnings,
    )
    if report.result == BUILD_SUCCEEDED:
        return replace(base, message="Build completed successfully")
    return replace(
        base,
        status=ResultStatus.FAILED,
        error_code=ErrorCode.BUILD_FAILED,
        message="Build failed. Check Unity console for errors.",
    )


class AgentRuntime:
    """Drives ``step`` from the host's update loop against real directories."""

    def __init__(
        self,
        paths: IpcPaths,
        host: HostPort,
        *,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
    ) -> None:
        self._paths = paths
        self._host = host
        self._commands = Mailbox(paths.command_dir)
        self._results = Mailbox(paths.result_dir)
        self._retention_seconds = retention_seconds
        self._state = AgentState()
        self._claims: dict[str, str] = {}
        self._answered: set[str] = set()

    @property
    def state(self) -> AgentState:
        return self._state

    def start(self) -> None:
        self._paths.command_dir.mkdir(parents=True, exist_ok=True)
        self._paths.result_dir.mkdir(parents=True, exist_ok=True)
        self._commands.unclaim_all()
        self._commands.purge(self._retention_seconds)
        self._results.purge(self._retention_seconds)
        self.write_heartbeat()

    def write_heartbeat(self) -> None:
        payload = {
            "pid": os.getpid(),
            "updated_at": now_iso(),
            "phase": self._state.phase.value,
        }
        atomic_write(self._paths.heartbeat_file, json.dumps(payload) + "\n")

    def tick(self) -> None:
        self.write_heartbeat()
        self._dispatch(Tick())
        for name in self._commands.names():
            self.process_command_file(name)

    def process_command_file(self, name: str) -> bool:
        """Claim and process one command file; ``False`` if it was already gone."""
        text = self._commands.claim(name)
        if text is None:
            return False
        try:
            command = decode_command(text)
        except CodecError as exc:
            log_event(
                logger, logging.ERROR, "agent.command.unreadable", name=name, exc=exc
            )
            self._commands.release_claim(name)
            return True
        if command.id in self._answered or self._commands.is_answered(name):
            log_event(logger, logging.WARNING, "agent.command.duplicate", command_id=command.id)
            self._commands.release_claim(name)
            return True
        self._claims[command.id] = name
        self._dispatch(CommandArrived(command))
        return True

    def _dispatch(self, event: AgentEvent) -> None:
        state, effects = step(self._state, event, self._host.status())
        if state != self._state:
            log_event(
                logger,
                logging.DEBUG,
                "agent.transition",
                trigger=type(event).__name__,
                phase=state.phase.value,
                pending=state.pending.id if state.pending else None,
            )
        self._state = state
        for effect in effects:
            self._apply(effect)

    def _apply(self, effect: AgentEffect) -> None:
        if isinstance(effect, WriteResult):
            self._write_result(effect.result)
        elif isinstance(effect, ExitPlayMode):
            self._host.exit_play_mode()
        elif isinstance(effect, RunBuild):
            result = execute_build(effect.command, self._host, effect.switch_platform)
            self._dispatch(BuildFinished(result))

    def _write_result(self, result: Result) -> None:
        name = result_filename(result.id)
        claimed = self._claims.pop(result.id, None)
        if result.id in self._answered or self._results.exists(name):
            log_event(logger, logging.WARNING, "agent.result.duplicate", command_id=result.id)
            if claimed is not None:
                self._commands.release_claim(claimed)
            return
        if claimed is not None:
            self._commands.mark_answered(claimed)
        self._results.put(name, encode_result(result))
        self._answered.add(result.id)
        log_event(
            logger,
            logging.INFO,
            "agent.result.written",
            command_id=result.id,
            status=result.status.value,
            error_code=result.error_code.value if result.error_code else None,
        )
        if claimed is not None:
            self._commands.clear_answered(claimed)


__all__ = [
    "AgentPhase",
    "AgentState",
    "HostStatus",
    "CommandArrived",
    "Tick",
    "BuildFinished",
    "WriteResult",
    "ExitPlayMode",
    "RunBuild",
    "BuildReport",
    "HostPort",
    "step",
    "execute_build",
    "AgentRuntime",
]
