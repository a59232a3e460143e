from __future__ import annotations

import logging

from ..core.exceptions import InvalidRequestError, TransportError
from ..core.logging_utils import log_event
from .codec import encode_command
from .models import (
    BuildRequest,
    BuildTarget,
    Command,
    CommandKind,
    DelegationPermissions,
    new_command_id,
)
from .transport import Mailbox, command_filename

logger = logging.getLogger(__name__)


class CommandEmitter:
    """Writes build commands into the shared command directory."""

    def __init__(self, mailbox: Mailbox) -> None:
        self._mailbox = mailbox

    @property
    def mailbox(self) -> Mailbox:
        return self._mailbox

    def build_command(
        self, request: BuildRequest, permissions: DelegationPermissions
    ) -> Command:
        if BuildTarget.parse(request.platform) is None:
            raise InvalidRequestError(
                f"Unsupported build platform: {request.platform!r}"
            )
        return Command(
            id=new_command_id(),
            kind=CommandKind.BUILD,
            platform=request.platform,
            output_path=str(request.output_path),
            log_path=str(request.log_path) if request.log_path else None,
            build_options=request.build_options,
            development_build=request.development_build,
            force_platform_switch=permissions.force_platform_switch,
            force_play_mode_exit=permissions.force_play_mode_exit,
        )

    def submit(
        self, request: BuildRequest, permissions: DelegationPermissions
    ) -> str:
        """Persist a new command for ``request`` and return its id."""
        command = self.build_command(request, permissions)
        parent = request.output_path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TransportError(
                f"Cannot create output parent directory {parent}: {exc}", path=parent
            ) from exc
        path = self._mailbox.put(command_filename(command.id), encode_command(command))
        log_event(
            logger,
            logging.INFO,
            "ipc.command.submitted",
            command_id=command.id,
            platform=command.platform,
            path=path,
            build_options=int(command.build_options),
            force_platform_switch=command.force_platform_switch,
            force_play_mode_exit=command.force_play_mode_exit,
        )
        return command.id


__all__ = ["CommandEmitter"]
