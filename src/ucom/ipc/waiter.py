from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from ..core.logging_utils import log_event
from .codec import CodecError, decode_result
from .models import Failed, Outcome, Result, Success, TimedOut
from .transport import Mailbox, result_filename

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.5


class ResultPending(Exception):
    """No usable result yet; polling continues until the deadline."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def translate(result: Result) -> Outcome:
    if result.ok:
        return Success(result)
    return Failed(message=result.message, error_code=result.error_code, result=result)


class ResultWaiter:
    """Polls the result directory for the answer to one command."""

    def __init__(
        self,
        mailbox: Mailbox,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._mailbox = mailbox
        self._poll_interval = max(0.01, float(poll_interval_seconds))
        self._sleep = sleep

    def poll_once(self, command_id: str) -> Result:
        name = result_filename(command_id)
        try:
            text = self._mailbox.read(name)
        except (UnicodeDecodeError, OSError) as exc:
            # A half-written file can end inside a multi-byte character, and
            # Windows reports a file still held by the writer as a share violation.
            log_event(
                logger,
                logging.DEBUG,
                "ipc.result.unreadable",
                command_id=command_id,
                exc=exc,
            )
            raise ResultPending(f"unreadable: {exc}") from exc
        if text is None:
            raise ResultPending("missing")
        try:
            result = decode_result(text)
        except CodecError as exc:
            # Partial writes decode as garbage until the writer finishes.
            log_event(
                logger,
                logging.DEBUG,
                "ipc.result.unreadable",
                command_id=command_id,
                exc=exc,
            )
            raise ResultPending(f"unreadable: {exc}") from exc
        if result.id != command_id:
            log_event(
                logger,
                logging.WARNING,
                "ipc.result.foreign_id",
                command_id=command_id,
                result_id=result.id,
            )
            raise ResultPending("foreign id")
        self._mailbox.delete(name)
        return result

    def wait(self, command_id: str, timeout_seconds: float) -> Outcome:
        """Block until the result for ``command_id`` arrives or time runs out."""
        timeout_seconds = max(0.0, float(timeout_seconds))
        retrying = Retrying(
            stop=stop_after_delay(timeout_seconds),
            wait=wait_fixed(self._poll_interval),
            retry=retry_if_exception_type(ResultPending),
            sleep=self._sleep,
        )
        try:
            result = retrying(self.poll_once, command_id)
        except RetryError as exc:
            last_reason: Optional[str] = None
            last_exc = exc.last_attempt.exception()
            if isinstance(last_exc, ResultPending):
                last_reason = last_exc.reason
            log_event(
                logger,
                logging.WARNING,
                "ipc.result.timed_out",
                command_id=command_id,
                timeout_seconds=timeout_seconds,
                last_reason=last_reason,
            )
            return TimedOut(command_id=command_id, timeout_seconds=timeout_seconds)
        outcome = translate(result)
        log_event(
            logger,
            logging.INFO,
            "ipc.result.received",
            command_id=command_id,
            status=result.status.value,
            error_code=result.error_code.value if result.error_code else None,
        )
        return outcome


__all__ = ["ResultPending", "ResultWaiter", "translate", "DEFAULT_POLL_INTERVAL_SECONDS"]
