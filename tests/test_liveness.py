import json
import os
from pathlib import Path

import pytest

from ucom.ipc.liveness import check_agent


def test_missing_heartbeat_is_not_live(tmp_path: Path) -> None:
    liveness = check_agent(tmp_path / "Temp" / "ucom-agent.heartbeat")
    assert not liveness.live
    assert liveness.age_seconds is None
    assert "no heartbeat" in liveness.reason


def test_fresh_heartbeat_is_live(tmp_path: Path) -> None:
    heartbeat = tmp_path / "ucom-agent.heartbeat"
    heartbeat.write_text(json.dumps({"pid": 42, "phase": "idle"}), encoding="utf-8")
    mtime = heartbeat.stat().st_mtime

    liveness = check_agent(heartbeat, 5.0, now=mtime + 1.0)

    assert liveness.live
    assert liveness.age_seconds == pytest.approx(1.0)
    assert liveness.details == {"pid": 42, "phase": "idle"}


def test_stale_heartbeat_is_not_live(tmp_path: Path) -> None:
    heartbeat = tmp_path / "ucom-agent.heartbeat"
    heartbeat.write_text("{}", encoding="utf-8")
    os.utime(heartbeat, (1000.0, 1000.0))

    liveness = check_agent(heartbeat, 5.0, now=1010.0)

    assert not liveness.live
    assert "stale" in liveness.reason
    assert liveness.to_dict()["age_seconds"] == 10.0


def test_unparseable_heartbeat_still_counts_by_mtime(tmp_path: Path) -> None:
    heartbeat = tmp_path / "ucom-agent.heartbeat"
    heartbeat.write_text("not json", encoding="utf-8")
    liveness = check_agent(heartbeat, 5.0, now=heartbeat.stat().st_mtime)
    assert liveness.live
    assert liveness.to_dict()["details"] == {}
