import json
from pathlib import Path

import pytest

from ucom.ipc.codec import encode_result
from ucom.ipc.models import (
    ErrorCode,
    Failed,
    Result,
    ResultStatus,
    Success,
    TimedOut,
)
from ucom.ipc.transport import Mailbox, result_filename
from ucom.ipc.waiter import ResultPending, ResultWaiter, translate

COMMAND_ID = "1" * 32


def _success(command_id: str = COMMAND_ID) -> Result:
    return Result(
        id=command_id,
        status=ResultStatus.SUCCESS,
        message="Build completed successfully",
        build_result="Succeeded",
    )


class _ScriptedSleep:
    """Runs one action per sleep call, so results can appear mid-wait."""

    def __init__(self, *actions) -> None:
        self.actions = list(actions)
        self.calls = 0

    def __call__(self, seconds: float) -> None:
        self.calls += 1
        if self.actions:
            self.actions.pop(0)()


def test_translate_maps_statuses() -> None:
    assert isinstance(translate(_success()), Success)
    rejected = translate(Result.rejection(COMMAND_ID, ErrorCode.BUSY, "busy"))
    assert isinstance(rejected, Failed)
    assert rejected.error_code is ErrorCode.BUSY
    assert rejected.result is not None
    failed = translate(
        Result(
            id=COMMAND_ID,
            status=ResultStatus.FAILED,
            error_code=ErrorCode.BUILD_FAILED,
            message="boom",
        )
    )
    assert isinstance(failed, Failed)
    assert failed.message == "boom"
    assert not failed.is_transport_failure


def test_result_present_before_waiting_is_consumed(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path)
    mailbox.put(result_filename(COMMAND_ID), encode_result(_success()))
    waiter = ResultWaiter(mailbox, poll_interval_seconds=0.01)

    outcome = waiter.wait(COMMAND_ID, timeout_seconds=5)

    assert isinstance(outcome, Success)
    assert outcome.exit_code == 0
    assert mailbox.names() == []


def test_result_appearing_later_is_picked_up(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path / "results-not-yet-created")
    sleep = _ScriptedSleep(
        lambda: None,
        lambda: mailbox.put(result_filename(COMMAND_ID), encode_result(_success())),
    )
    waiter = ResultWaiter(mailbox, poll_interval_seconds=0.01, sleep=sleep)

    outcome = waiter.wait(COMMAND_ID, timeout_seconds=30)

    assert isinstance(outcome, Success)
    assert sleep.calls == 2


def test_partial_file_is_retried_until_complete(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path)
    path = mailbox.directory / result_filename(COMMAND_ID)
    path.write_text('{"uuid": "', encoding="utf-8")
    sleep = _ScriptedSleep(
        lambda: path.write_text(encode_result(_success()), encoding="utf-8")
    )
    waiter = ResultWaiter(mailbox, poll_interval_seconds=0.01, sleep=sleep)

    assert isinstance(waiter.wait(COMMAND_ID, timeout_seconds=30), Success)


def test_result_cut_inside_multibyte_character_is_retried(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path)
    path = mailbox.directory / result_filename(COMMAND_ID)
    # The editor writes raw UTF-8 rather than \u escapes.
    result = Result(id=COMMAND_ID, status=ResultStatus.SUCCESS, message="Build été ok")
    full = json.dumps(json.loads(encode_result(result)), ensure_ascii=False).encode("utf-8")
    path.write_bytes(full[: full.index("é".encode("utf-8")) + 1])
    sleep = _ScriptedSleep(lambda: path.write_bytes(full))
    waiter = ResultWaiter(mailbox, poll_interval_seconds=0.01, sleep=sleep)

    with pytest.raises(ResultPending):
        waiter.poll_once(COMMAND_ID)
    outcome = waiter.wait(COMMAND_ID, timeout_seconds=30)

    assert isinstance(outcome, Success)
    assert outcome.message == "Build été ok"


def test_unreadable_result_file_is_pending(tmp_path: Path, monkeypatch) -> None:
    mailbox = Mailbox(tmp_path)

    def locked(_name: str):
        raise PermissionError("being used by another process")

    monkeypatch.setattr(mailbox, "read", locked)
    waiter = ResultWaiter(mailbox, poll_interval_seconds=0.01)

    with pytest.raises(ResultPending) as excinfo:
        waiter.poll_once(COMMAND_ID)
    assert "unreadable" in excinfo.value.reason
    assert isinstance(waiter.wait(COMMAND_ID, timeout_seconds=0), TimedOut)


def test_foreign_uuid_is_ignored(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path)
    mailbox.put(result_filename(COMMAND_ID), encode_result(_success("2" * 32)))
    waiter = ResultWaiter(mailbox, poll_interval_seconds=0.01)

    with pytest.raises(ResultPending):
        waiter.poll_once(COMMAND_ID)
    assert mailbox.exists(result_filename(COMMAND_ID))


def test_times_out_without_result(tmp_path: Path) -> None:
    waiter = ResultWaiter(Mailbox(tmp_path), poll_interval_seconds=0.01)

    outcome = waiter.wait(COMMAND_ID, timeout_seconds=0)

    assert isinstance(outcome, TimedOut)
    assert outcome.command_id == COMMAND_ID
    assert outcome.exit_code == 1
    assert COMMAND_ID in outcome.message


def test_rejection_becomes_failed_outcome(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path)
    rejection = Result.rejection(COMMAND_ID, ErrorCode.IN_PLAY_MODE, "in play mode")
    mailbox.put(result_filename(COMMAND_ID), encode_result(rejection))

    outcome = ResultWaiter(mailbox).wait(COMMAND_ID, timeout_seconds=1)

    assert isinstance(outcome, Failed)
    assert outcome.error_code is ErrorCode.IN_PLAY_MODE
    assert outcome.message == "in play mode"
    assert outcome.exit_code == 1
