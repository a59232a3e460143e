import logging
from pathlib import Path

import pytest

from ucom.core.config import LogConfig
from ucom.core.logging_utils import (
    ROOT_LOGGER_NAME,
    format_event,
    log_event,
    setup_rotating_logger,
)


@pytest.fixture
def clean_root_logger():
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    before = list(logger.handlers)
    yield logger
    for handler in list(logger.handlers):
        if handler not in before:
            logger.removeHandler(handler)
            handler.close()


def test_format_event_renders_fields() -> None:
    line = format_event(
        "ipc.emitted",
        command_id="abc",
        path=Path("Temp/ucom-commands/abc.json"),
        error=ValueError("bad"),
    )
    assert line == (
        'ipc.emitted command_id="abc" path="Temp/ucom-commands/abc.json" '
        'error="ValueError: bad"'
    )
    assert format_event("agent.started") == "agent.started"


def test_log_event_respects_level(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("ucom.test")
    with caplog.at_level(logging.INFO, logger="ucom.test"):
        log_event(logger, logging.DEBUG, "hidden.event", value=1)
        log_event(logger, logging.INFO, "shown.event", value=2)
    assert [record.getMessage() for record in caplog.records] == ["shown.event value=2"]


def test_setup_rotating_logger_replaces_its_handler(
    tmp_path: Path, clean_root_logger: logging.Logger
) -> None:
    config = LogConfig(
        path=Path("Logs/ucom.log"), max_bytes=1024, backup_count=1, level=logging.INFO
    )
    setup_rotating_logger(config, tmp_path)
    logger = setup_rotating_logger(config, tmp_path)

    file_handlers = [h for h in logger.handlers if h.get_name() == "ucom-file"]
    assert len(file_handlers) == 1
    log_event(logging.getLogger("ucom.test"), logging.INFO, "written.event")
    file_handlers[0].flush()
    assert "written.event" in (tmp_path / "Logs" / "ucom.log").read_text(encoding="utf-8")
