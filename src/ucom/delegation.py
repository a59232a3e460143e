"""Decides whether a build goes to a running editor or to a fresh batch run.

``DelegationEngine.execute`` checks for a live agent. Without one it returns
``Unavailable`` immediately and touches nothing, so the caller can fall back
to a batch build. With one it injects the companion script if needed, sends a
command and waits for the matching result. The injection is released on every
path out of the delegation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from .core.config import UcomConfig
from .core.exceptions import InjectionError, InvalidRequestError, TransportError
from .core.logging_utils import log_event
from .housekeeping import purge_ipc_files
from .injection import ScriptInjector
from .ipc.emitter import CommandEmitter
from .ipc.liveness import AgentLiveness, check_agent
from .ipc.models import (
    BuildRequest,
    DelegationPermissions,
    Failed,
    InjectPolicy,
    Outcome,
    Unavailable,
)
from .ipc.transport import IpcPaths, Mailbox
from .ipc.waiter import ResultWaiter

logger = logging.getLogger(__name__)

LivenessCheck = Callable[[Path, float], AgentLiveness]


def _describe(outcome: Outcome) -> dict[str, object]:
    fields: dict[str, object] = {"outcome": type(outcome).__name__}
    error_code = getattr(outcome, "error_code", None)
    if error_code is not None:
        fields["error_code"] = error_code.value
    return fields


class DelegationEngine:
    def __init__(
        self,
        project_root: Path,
        paths: IpcPaths,
        *,
        injector: ScriptInjector,
        emitter: CommandEmitter,
        waiter: ResultWaiter,
        inject_policy: Union[InjectPolicy, str] = InjectPolicy.AUTO,
        timeout_seconds: float = 1800.0,
        heartbeat_max_age_seconds: float = 5.0,
        retention_seconds: float = 3600.0,
        liveness: LivenessCheck = check_agent,
    ) -> None:
        self._project_root = project_root
        self._paths = paths
        self._injector = injector
        self._emitter = emitter
        self._waiter = waiter
        self._inject_policy = InjectPolicy(inject_policy)
        self._timeout_seconds = timeout_seconds
        self._heartbeat_max_age_seconds = heartbeat_max_age_seconds
        self._retention_seconds = retention_seconds
        self._check_liveness = liveness

    @classmethod
    def from_config(
        cls,
        project_root: Path,
        config: UcomConfig,
        *,
        inject_policy: Optional[Union[InjectPolicy, str]] = None,
        timeout_seconds: Optional[float] = None,
        injector: Optional[ScriptInjector] = None,
    ) -> "DelegationEngine":
        ipc = config.ipc
        paths = IpcPaths.for_project(project_root, ipc)
        return cls(
            project_root,
            paths,
            injector=injector or ScriptInjector(),
            emitter=CommandEmitter(
                Mailbox(paths.command_dir, durable=ipc.durable_writes)
            ),
            waiter=ResultWaiter(
                Mailbox(paths.result_dir),
                poll_interval_seconds=ipc.poll_interval_seconds,
            ),
            inject_policy=inject_policy or config.build.inject,
            timeout_seconds=timeout_seconds or ipc.timeout_seconds,
            heartbeat_max_age_seconds=ipc.heartbeat_max_age_seconds,
            retention_seconds=ipc.retention_seconds,
        )

    @property
    def paths(self) -> IpcPaths:
        return self._paths

    def liveness(self) -> AgentLiveness:
        return self._check_liveness(self._paths.heartbeat_file, self._heartbeat_max_age_seconds)

    def execute(
        self, request: BuildRequest, permissions: DelegationPermissions
    ) -> Outcome:
        liveness = self.liveness()
        if not liveness.live:
            log_event(
                logger,
                logging.INFO,
                "delegation.unavailable",
                project=self._project_root,
                reason=liveness.reason,
            )
            return Unavailable(reason=liveness.reason)

        purge_ipc_files(self._paths, self._retention_seconds)
        try:
            with self._injector.acquire(self._project_root, self._inject_policy):
                outcome = self._delegate(request, permissions)
        except InjectionError as exc:
            log_event(logger, logging.ERROR, "delegation.injection_failed", exc=exc)
            return Failed(message=str(exc))
        log_event(logger, logging.INFO, "delegation.outcome", **_describe(outcome))
        return outcome

    def _delegate(
        self, request: BuildRequest, permissions: DelegationPermissions
    ) -> Outcome:
        try:
            command_id = self._emitter.submit(request, permissions)
        except (TransportError, InvalidRequestError) as exc:
            log_event(logger, logging.ERROR, "delegation.submit_failed", exc=exc)
            return Failed(message=str(exc))
        log_event(
            logger,
            logging.INFO,
            "delegation.submitted",
            command_id=command_id,
            timeout_seconds=self._timeout_seconds,
        )
        return self._waiter.wait(command_id, self._timeout_seconds)


__all__ = ["DelegationEngine", "LivenessCheck"]
