"""File-based command/result protocol between ucom and a running editor."""

from .codec import CodecError, decode_command, decode_result, encode_command, encode_result
from .emitter import CommandEmitter
from .liveness import AgentLiveness, check_agent
from .models import (
    BuildOptions,
    BuildRequest,
    BuildTarget,
    Command,
    CommandKind,
    DelegationPermissions,
    ErrorCode,
    Failed,
    InjectPolicy,
    Outcome,
    Result,
    ResultStatus,
    Success,
    TimedOut,
    Unavailable,
)
from .transport import IpcPaths, Mailbox
from .waiter import ResultWaiter, translate

__all__ = [
    "AgentLiveness",
    "BuildOptions",
    "BuildRequest",
    "BuildTarget",
    "CodecError",
    "Command",
    "CommandEmitter",
    "CommandKind",
    "DelegationPermissions",
    "ErrorCode",
    "Failed",
    "InjectPolicy",
    "IpcPaths",
    "Mailbox",
    "Outcome",
    "Result",
    "ResultStatus",
    "ResultWaiter",
    "Success",
    "TimedOut",
    "Unavailable",
    "decode_command",
    "decode_result",
    "encode_command",
    "encode_result",
    "check_agent",
    "translate",
]
