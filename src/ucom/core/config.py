import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

import yaml
from dotenv import dotenv_values

from .exceptions import ConfigError

logger = logging.getLogger("ucom.core.config")

CONFIG_FILENAME = "ucom.yml"
OVERRIDE_FILENAME = "ucom.override.yml"
DOTENV_FILENAME = ".env"

ENV_EDITOR = "UCOM_EDITOR"
ENV_IPC_TIMEOUT = "UCOM_IPC_TIMEOUT"
ENV_INJECT = "UCOM_INJECT"

INJECT_POLICIES = ("auto", "persistent", "off")
BUILD_MODES = ("batch", "batch-nogfx", "editor-quit", "editor")
OUTPUT_TYPES = ("release", "debug")

DEFAULT_CONFIG: Dict[str, Any] = {
    "ipc": {
        "command_dir": "Temp/ucom-commands",
        "result_dir": "Temp/ucom-results",
        "heartbeat_file": "Temp/ucom-agent.heartbeat",
        "heartbeat_max_age_seconds": 5.0,
        "poll_interval_seconds": 0.5,
        "timeout_seconds": 1800.0,
        "retention_seconds": 3600.0,
        "durable_writes": False,
    },
    "build": {
        "inject": "auto",
        "mode": "batch",
        "build_function": "Ucom.UnityBuilder.Build",
        "output_type": "release",
        "delegate": True,
    },
    "editor": {
        "path": None,
    },
    "log": {
        "path": "Logs/ucom.log",
        "max_bytes": 1024 * 1024,
        "backup_count": 3,
        "level": "INFO",
    },
}


@dataclasses.dataclass
class IpcConfig:
    command_dir: Path
    result_dir: Path
    heartbeat_file: Path
    heartbeat_max_age_seconds: float
    poll_interval_seconds: float
    timeout_seconds: float
    retention_seconds: float
    durable_writes: bool


@dataclasses.dataclass
class BuildConfig:
    inject: str
    mode: str
    build_function: str
    output_type: str
    delegate: bool


@dataclasses.dataclass
class EditorConfig:
    path: Optional[Path]


@dataclasses.dataclass
class LogConfig:
    path: Path
    max_bytes: int
    backup_count: int
    level: int


@dataclasses.dataclass
class UcomConfig:
    root: Path
    ipc: IpcConfig
    build: BuildConfig
    editor: EditorConfig
    log: LogConfig


def _merge_defaults(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = cast(Dict[str, Any], json.loads(json.dumps(base)))
    for key, value in overrides.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def resolve_env_for_root(
    root: Path, base_env: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Return the process env with ``root/.env`` filling in unset keys.

    The process environment is never mutated and always wins.
    """
    env = dict(base_env) if base_env is not None else dict(os.environ)
    candidate = root / DOTENV_FILENAME
    if not candidate.exists():
        return env
    for key, value in dotenv_values(candidate).items():
        if key and value is not None and key not in env:
            env[str(key)] = str(value)
    return env


def load_config_data(root: Path) -> Dict[str, Any]:
    """Merge defaults, ``ucom.yml`` and ``ucom.override.yml`` for a project root."""
    merged = _merge_defaults(DEFAULT_CONFIG, {})
    base = _load_yaml_dict(root / CONFIG_FILENAME)
    if base:
        merged = _merge_defaults(merged, base)
    override_path = root / OVERRIDE_FILENAME
    try:
        override = _load_yaml_dict(override_path)
    except ConfigError as exc:
        raise ConfigError(
            f"Invalid override config {override_path}; fix or delete it: {exc}"
        ) from exc
    if override:
        merged = _merge_defaults(merged, override)
    return merged


def _apply_env_overrides(cfg: Dict[str, Any], env: Mapping[str, str]) -> None:
    editor = (env.get(ENV_EDITOR) or "").strip()
    if editor:
        _section(cfg, "editor")["path"] = editor
    timeout = (env.get(ENV_IPC_TIMEOUT) or "").strip()
    if timeout:
        try:
            _section(cfg, "ipc")["timeout_seconds"] = float(timeout)
        except ValueError as exc:
            raise ConfigError(
                f"{ENV_IPC_TIMEOUT} must be a number of seconds, got {timeout!r}"
            ) from exc
    inject = (env.get(ENV_INJECT) or "").strip()
    if inject:
        _section(cfg, "build")["inject"] = inject


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = cfg.get(name)
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    return value


def _positive_float(section: Dict[str, Any], prefix: str, key: str) -> float:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{prefix}.{key} must be a number")
    if value <= 0:
        raise ConfigError(f"{prefix}.{key} must be greater than zero")
    return float(value)


def _non_negative_int(section: Dict[str, Any], prefix: str, key: str) -> int:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{prefix}.{key} must be a non-negative integer")
    return value


def _choice(section: Dict[str, Any], prefix: str, key: str, allowed: tuple) -> str:
    value = section.get(key)
    if not isinstance(value, str) or value.strip().lower() not in allowed:
        raise ConfigError(f"{prefix}.{key} must be one of: {', '.join(allowed)}")
    return value.strip().lower()


def _rel_path(section: Dict[str, Any], prefix: str, key: str) -> Path:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{prefix}.{key} must be a non-empty path")
    return Path(value.strip())


def _parse_log_level(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    raise ConfigError(f"log.level is not a valid logging level: {value!r}")


def _build_config(root: Path, cfg: Dict[str, Any]) -> UcomConfig:
    ipc_cfg = _section(cfg, "ipc")
    build_cfg = _section(cfg, "build")
    editor_cfg = _section(cfg, "editor")
    log_cfg = _section(cfg, "log")

    ipc = IpcConfig(
        command_dir=_rel_path(ipc_cfg, "ipc", "command_dir"),
        result_dir=_rel_path(ipc_cfg, "ipc", "result_dir"),
        heartbeat_file=_rel_path(ipc_cfg, "ipc", "heartbeat_file"),
        heartbeat_max_age_seconds=_positive_float(
            ipc_cfg, "ipc", "heartbeat_max_age_seconds"
        ),
        poll_interval_seconds=_positive_float(ipc_cfg, "ipc", "poll_interval_seconds"),
        timeout_seconds=_positive_float(ipc_cfg, "ipc", "timeout_seconds"),
        retention_seconds=_positive_float(ipc_cfg, "ipc", "retention_seconds"),
        durable_writes=bool(ipc_cfg.get("durable_writes", False)),
    )

    if build_cfg.get("inject") is False:
        # YAML 1.1 reads a bare `off` as false.
        build_cfg["inject"] = "off"
    build_function = build_cfg.get("build_function")
    if not isinstance(build_function, str) or not build_function.strip():
        raise ConfigError("build.build_function must be a non-empty string")
    build = BuildConfig(
        inject=_choice(build_cfg, "build", "inject", INJECT_POLICIES),
        mode=_choice(build_cfg, "build", "mode", BUILD_MODES),
        build_function=build_function.strip(),
        output_type=_choice(build_cfg, "build", "output_type", OUTPUT_TYPES),
        delegate=bool(build_cfg.get("delegate", True)),
    )

    editor_path = editor_cfg.get("path")
    if editor_path is not None and not isinstance(editor_path, str):
        raise ConfigError("editor.path must be a string when set")
    editor = EditorConfig(
        path=Path(editor_path).expanduser() if editor_path else None
    )

    log = LogConfig(
        path=_rel_path(log_cfg, "log", "path"),
        max_bytes=_non_negative_int(log_cfg, "log", "max_bytes"),
        backup_count=_non_negative_int(log_cfg, "log", "backup_count"),
        level=_parse_log_level(log_cfg.get("level", "INFO")),
    )
    return UcomConfig(root=root, ipc=ipc, build=build, editor=editor, log=log)


def load_config(root: Path, env: Optional[Mapping[str, str]] = None) -> UcomConfig:
    """Load the effective configuration for a project root."""
    root = root.resolve()
    cfg = load_config_data(root)
    _apply_env_overrides(cfg, resolve_env_for_root(root, env))
    config = _build_config(root, cfg)
    logger.debug("Loaded config for %s", root)
    return config


__all__ = [
    "CONFIG_FILENAME",
    "OVERRIDE_FILENAME",
    "DEFAULT_CONFIG",
    "ENV_EDITOR",
    "ENV_IPC_TIMEOUT",
    "ENV_INJECT",
    "INJECT_POLICIES",
    "BUILD_MODES",
    "OUTPUT_TYPES",
    "ConfigError",
    "IpcConfig",
    "BuildConfig",
    "EditorConfig",
    "LogConfig",
    "UcomConfig",
    "load_config",
    "load_config_data",
    "resolve_env_for_root",
]
