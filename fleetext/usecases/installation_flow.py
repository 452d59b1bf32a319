"""Installation state machine: stage -> upload -> install for one record.

The flow owns a :class:`Claim` on the in-flight registry. Every state change
is committed through the registry, which refuses it once the key has been
removed, so a cancelled record is never advanced or resurrected. Network calls
already in progress are not interrupted; only their follow-up commits are
suppressed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fleetext.domain.errors import ExtensionError
from fleetext.domain.inflight_registry import Claim, InFlightRegistry
from fleetext.domain.installation import InstallState
from fleetext.domain.ports import StagerPort, TaskOperation, TaskPort, UploaderPort
from fleetext.domain.targets import Target
from fleetext.usecases.error_mapping import describe
from fleetext.utils.logging import operation_logger

log = logging.getLogger(__name__)


class _Cancelled(Exception):
    """Internal signal: the claim went stale between two stages."""


@dataclass(frozen=True)
class InstallationContext:
    """Per-operation inputs threaded through every stage."""

    target: Target
    source_url: str
    artifact_file: str
    claim: Claim
    failure_note: Optional[str] = None


@dataclass
class InstallationFlow:
    registry: InFlightRegistry
    stager: StagerPort
    uploader: UploaderPort
    tasks: TaskPort
    task_timeout_s: Optional[float] = None

    def run(self, ctx: InstallationContext) -> InstallState:
        """Drive the record to AVAILABLE or ERROR and return the final state.

        Never raises: stage errors are recorded on the record. After a
        cancellation the last committed state is returned.
        """
        olog = operation_logger(log, ctx.claim.key)
        reached = InstallState.REQUESTED
        try:
            reached = self._commit(ctx, InstallState.DOWNLOADING)
            staged = self.stager.stage(ctx.source_url, ctx.target)
            if not staged:
                raise ExtensionError(
                    f"could not download rpmFile {ctx.artifact_file} to staging",
                    code="DOWNLOAD_FAILED",
                    status=502,
                )

            reached = self._commit(ctx, InstallState.UPLOADING)
            if not self.uploader.upload(ctx.target, staged):
                raise ExtensionError(
                    f"could not upload rpmFile {staged} to target {ctx.target.key}",
                    code="UPLOAD_FAILED",
                    status=502,
                )

            reached = self._commit(ctx, InstallState.INSTALLING)
            self.tasks.run_task(
                ctx.target, TaskOperation.INSTALL, staged, self.task_timeout_s
            )

            reached = self._commit(ctx, InstallState.AVAILABLE)
        except _Cancelled:
            olog.info("cancelled after %s", reached.value)
            return reached
        except Exception as exc:
            if not isinstance(exc, ExtensionError):
                olog.exception("failed in %s", reached.value)
            message = (
                f"package with rpmFile {ctx.artifact_file} was not installed on target "
                f"{ctx.target.key}: {describe(exc)}"
            )
            if ctx.failure_note:
                message = f"{message} ({ctx.failure_note})"
            if self.registry.fail(ctx.claim, message):
                return InstallState.ERROR
            return reached

        self.registry.release(ctx.claim)
        olog.info("installed")
        return InstallState.AVAILABLE

    def _commit(self, ctx: InstallationContext, state: InstallState) -> InstallState:
        if not self.registry.advance(ctx.claim, state):
            raise _Cancelled()
        return state


__all__ = ["InstallationContext", "InstallationFlow"]
