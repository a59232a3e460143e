from pathlib import Path

import pytest

from ucom.core.exceptions import InvalidRequestError, TransportError
from ucom.ipc.codec import decode_command
from ucom.ipc.emitter import CommandEmitter
from ucom.ipc.models import (
    BuildOptions,
    BuildRequest,
    CommandKind,
    DelegationPermissions,
)
from ucom.ipc.transport import Mailbox, command_filename


def _request(tmp_path: Path, platform: str = "Android") -> BuildRequest:
    return BuildRequest(
        platform=platform,
        output_path=tmp_path / "Builds" / "release" / "android",
        log_path=tmp_path / "Logs" / "Build-android.log",
        build_options=BuildOptions.DEVELOPMENT,
        development_build=True,
    )


def test_submit_writes_exactly_one_command(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path / "commands")
    emitter = CommandEmitter(mailbox)

    command_id = emitter.submit(_request(tmp_path), DelegationPermissions.forced())

    assert mailbox.names() == [command_filename(command_id)]
    command = decode_command(mailbox.read(command_filename(command_id)) or "")
    assert command.id == command_id
    assert command.kind is CommandKind.BUILD
    assert command.platform == "Android"
    assert command.output_path == str(tmp_path / "Builds" / "release" / "android")
    assert command.log_path == str(tmp_path / "Logs" / "Build-android.log")
    assert command.build_options == BuildOptions.DEVELOPMENT
    assert command.development_build is True
    assert command.force_platform_switch is True
    assert command.force_play_mode_exit is True
    assert command.created_at.endswith("Z")


def test_submit_creates_output_parent(tmp_path: Path) -> None:
    emitter = CommandEmitter(Mailbox(tmp_path / "commands"))
    emitter.submit(_request(tmp_path), DelegationPermissions())
    assert (tmp_path / "Builds" / "release").is_dir()


def test_each_submission_gets_a_fresh_id(tmp_path: Path) -> None:
    emitter = CommandEmitter(Mailbox(tmp_path / "commands"))
    first = emitter.submit(_request(tmp_path), DelegationPermissions())
    second = emitter.submit(_request(tmp_path), DelegationPermissions())
    assert first != second
    assert len(first) == 32


def test_unknown_platform_is_rejected_before_writing(tmp_path: Path) -> None:
    mailbox = Mailbox(tmp_path / "commands")
    emitter = CommandEmitter(mailbox)
    with pytest.raises(InvalidRequestError):
        emitter.submit(_request(tmp_path, platform="PlayStation9"), DelegationPermissions())
    assert mailbox.names() == []


def test_unwritable_output_parent_is_a_transport_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    request = BuildRequest(platform="WebGL", output_path=blocker / "sub" / "webgl")
    emitter = CommandEmitter(Mailbox(tmp_path / "commands"))
    with pytest.raises(TransportError):
        emitter.submit(request, DelegationPermissions())
