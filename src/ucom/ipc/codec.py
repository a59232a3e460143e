"""JSON codec for command and result files.

Keys follow the editor serializer's field names. That serializer cannot
write ``null``, so optional strings travel as ``""`` and are read back as
``None``. Missing numeric and boolean fields fall back to zero/false so that
records written by older agents stay readable.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from .models import (
    BuildOptions,
    Command,
    ErrorCode,
    Result,
    ResultStatus,
    parse_command_kind,
)


class CodecError(ValueError):
    """Raised when a command or result payload cannot be decoded."""


def _optional_text(value: Optional[str]) -> str:
    return value if value is not None else ""


def _load_object(text: str, what: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise CodecError(f"Invalid {what} JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise CodecError(f"{what} payload must be a JSON object")
    return data


def _read_str(data: dict[str, Any], key: str, *, required: bool = False) -> str:
    value = data.get(key)
    if value is None:
        if required:
            raise CodecError(f"missing required field: {key}")
        return ""
    if not isinstance(value, str):
        raise CodecError(f"{key} must be a string")
    if required and not value.strip():
        raise CodecError(f"missing required field: {key}")
    return value


def _read_optional_str(data: dict[str, Any], key: str) -> Optional[str]:
    value = _read_str(data, key)
    return value or None


def _read_bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise CodecError(f"{key} must be a boolean")
    return value


def _read_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CodecError(f"{key} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise CodecError(f"{key} must be an integer")
    return int(value)


def _read_float(data: dict[str, Any], key: str) -> float:
    value = data.get(key, 0.0)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CodecError(f"{key} must be a number")
    return float(value)


def encode_command(command: Command) -> str:
    payload = {
        "command": command.kind.value,
        "uuid": command.id,
        "timestamp": command.created_at,
        "platform": command.platform,
        "output_path": command.output_path,
        "log_path": _optional_text(command.log_path),
        "build_options": int(command.build_options),
        "development_build": command.development_build,
        "force_platform_switch": command.force_platform_switch,
        "force_play_mode_exit": command.force_play_mode_exit,
    }
    return json.dumps(payload, indent=2) + "\n"


def decode_command(text: str) -> Command:
    data = _load_object(text, "command")
    try:
        return Command(
            id=_read_str(data, "uuid", required=True),
            kind=parse_command_kind(_read_str(data, "command")),
            platform=_read_str(data, "platform"),
            output_path=_read_str(data, "output_path"),
            log_path=_read_optional_str(data, "log_path"),
            build_options=BuildOptions(_read_int(data, "build_options")),
            development_build=_read_bool(data, "development_build"),
            force_platform_switch=_read_bool(data, "force_platform_switch"),
            force_play_mode_exit=_read_bool(data, "force_play_mode_exit"),
            created_at=_read_str(data, "timestamp"),
        )
    except CodecError:
        raise
    except ValueError as exc:
        raise CodecError(f"Invalid command: {exc}") from exc


def encode_result(result: Result) -> str:
    payload = {
        "uuid": result.id,
        "status": result.status.value,
        "message": result.message,
        "error_code": result.error_code.value if result.error_code else "",
        "platform_switched": result.platform_switched,
        "original_platform": result.original_platform,
        "switched_to": _optional_text(result.switched_to),
        "build_time_seconds": result.build_time_seconds,
        "platform_switch_time_seconds": result.platform_switch_time_seconds,
        "output_path": result.output_path,
        "build_result": result.build_result,
        "platform": result.platform,
        "total_size": result.total_size,
        "total_errors": result.total_errors,
        "total_warnings": result.total_warnings,
    }
    return json.dumps(payload, indent=2) + "\n"


def decode_result(text: str) -> Result:
    data = _load_object(text, "result")
    raw_status = _read_str(data, "status", required=True)
    try:
        status = ResultStatus(raw_status)
    except ValueError as exc:
        raise CodecError(f"unknown result status: {raw_status!r}") from exc
    raw_code = _read_str(data, "error_code")
    error_code: Optional[ErrorCode] = None
    if raw_code:
        try:
            error_code = ErrorCode(raw_code)
        except ValueError as exc:
            raise CodecError(f"unknown error code: {raw_code!r}") from exc
    try:
        return Result(
            id=_read_str(data, "uuid", required=True),
            status=status,
            error_code=error_code,
            message=_read_str(data, "message"),
            platform_switched=_read_bool(data, "platform_switched"),
            original_platform=_read_str(data, "original_platform"),
            switched_to=_read_optional_str(data, "switched_to"),
            build_time_seconds=_read_float(data, "build_time_seconds"),
            platform_switch_time_seconds=_read_float(
                data, "platform_switch_time_seconds"
            ),
            output_path=_read_str(data, "output_path"),
            build_result=_read_str(data, "build_result"),
            platform=_read_str(data, "platform"),
            total_size=_read_int(data, "total_size"),
            total_errors=_read_int(data, "total_errors"),
            total_warnings=_read_int(data, "total_warnings"),
        )
    except CodecError:
        raise
    except ValueError as exc:
        raise CodecError(f"Invalid result: {exc}") from exc


__all__ = [
    "CodecError",
    "encode_command",
    "decode_command",
    "encode_result",
    "decode_result",
]
