from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .config import LogConfig

ROOT_LOGGER_NAME = "ucom"
_FILE_HANDLER_NAME = "ucom-file"
_STDERR_HANDLER_NAME = "ucom-stderr"
_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _render_value(value: Any) -> str:
    if isinstance(value, BaseException):
        return json.dumps(f"{type(value).__name__}: {value}")
    if isinstance(value, Path):
        return json.dumps(str(value))
    try:
        return json.dumps(value, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return json.dumps(repr(value))


def format_event(event: str, **fields: Any) -> str:
    if not fields:
        return event
    parts = [f"{key}={_render_value(value)}" for key, value in fields.items()]
    return f"{event} " + " ".join(parts)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log a dotted event name followed by ``key=value`` pairs."""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, format_event(event, **fields))


def _find_handler(logger: logging.Logger, name: str) -> Optional[logging.Handler]:
    for handler in logger.handlers:
        if handler.get_name() == name:
            return handler
    return None


def setup_rotating_logger(config: "LogConfig", project_root: Path) -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    existing = _find_handler(logger, _FILE_HANDLER_NAME)
    if existing is not None:
        logger.removeHandler(existing)
        existing.close()
    log_path = config.path if config.path.is_absolute() else project_root / config.path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.set_name(_FILE_HANDLER_NAME)
    handler.setLevel(config.level)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    return logger


def enable_stderr_logging(level: int = logging.DEBUG) -> None:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if _find_handler(logger, _STDERR_HANDLER_NAME) is not None:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_STDERR_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


__all__ = [
    "ROOT_LOGGER_NAME",
    "format_event",
    "log_event",
    "setup_rotating_logger",
    "enable_stderr_logging",
]
