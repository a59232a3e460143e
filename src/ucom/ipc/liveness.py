from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

DEFAULT_HEARTBEAT_MAX_AGE_SECONDS = 5.0


@dataclass(frozen=True)
class AgentLiveness:
    live: bool
    reason: str
    age_seconds: Optional[float] = None
    details: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "live": self.live,
            "reason": self.reason,
            "age_seconds": self.age_seconds,
            "details": self.details or {},
        }


def _read_details(path: Path) -> Optional[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def check_agent(
    heartbeat_file: Path,
    max_age_seconds: float = DEFAULT_HEARTBEAT_MAX_AGE_SECONDS,
    *,
    now: Optional[float] = None,
) -> AgentLiveness:
    """Report whether an editor agent is refreshing its heartbeat file.

    The agent touches the file on every poll; an old or missing file means
    nothing is listening for commands.
    """
    try:
        mtime = heartbeat_file.stat().st_mtime
    except FileNotFoundError:
        return AgentLiveness(live=False, reason="no heartbeat file")
    except OSError as exc:
        return AgentLiveness(live=False, reason=f"heartbeat unreadable: {exc}")
    current = time.time() if now is None else now
    age = max(0.0, current - mtime)
    details = _read_details(heartbeat_file)
    if age > max_age_seconds:
        return AgentLiveness(
            live=False,
            reason=f"heartbeat is stale ({age:.1f}s old)",
            age_seconds=age,
            details=details,
        )
    return AgentLiveness(live=True, reason="heartbeat fresh", age_seconds=age, details=details)


__all__ = ["AgentLiveness", "check_agent", "DEFAULT_HEARTBEAT_MAX_AGE_SECONDS"]
