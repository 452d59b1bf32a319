"""Use cases accepting INSTALL and REINSTALL (update) requests.

Both validate synchronously, claim the (target, artifact) key atomically and
hand the staged work to a background worker. The caller gets the REQUESTED
snapshot back immediately; later progress is visible through queries.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from fleetext.domain.errors import AlreadyInstalledError, ExtensionError
from fleetext.domain.inflight_registry import Claim, InFlightRegistry, make_key
from fleetext.domain.installation import InstallationRecord, validate_source_url
from fleetext.domain.ports import TaskOperation, TaskPort
from fleetext.domain.targets import Target
from fleetext.usecases.error_mapping import describe
from fleetext.usecases.installation_flow import InstallationContext, InstallationFlow
from fleetext.usecases.query_extensions import find_installed_package
from fleetext.usecases.resolve_target import ResolveTarget

log = logging.getLogger(__name__)

Runner = Callable[[Callable[[], object], str], None]


def start_worker(work: Callable[[], object], name: str) -> None:
    """Run ``work`` on a daemon thread."""
    worker = threading.Thread(target=work, name=name, daemon=True)
    worker.start()


@dataclass
class _AcceptInstall:
    registry: InFlightRegistry
    flow: InstallationFlow
    tasks: TaskPort
    resolve_target: ResolveTarget
    query_timeout_s: Optional[float] = None
    runner: Runner = field(default=start_worker)

    def _claim(
        self, source_url: Optional[str], target: Optional[str], port: Optional[int]
    ) -> tuple[Target, str, Claim]:
        artifact = validate_source_url(source_url)
        resolved = self.resolve_target(target, port)
        record = InstallationRecord(artifact_file=artifact, source_url=str(source_url).strip())
        claim = self.registry.claim(make_key(resolved, artifact), record)
        return resolved, artifact, claim

    def _launch(self, ctx: InstallationContext) -> InstallationRecord:
        snapshot = self.registry.claimed_snapshot(ctx.claim)
        if snapshot is None:
            raise ExtensionError(
                f"installation of {ctx.artifact_file} on target {ctx.target.key} "
                "was cancelled before it started",
                code="OPERATION_CANCELLED",
                status=409,
            )
        self.runner(lambda: self.flow.run(ctx), f"install-{ctx.claim.key}")
        log.info("Accepted install of %s on %s", ctx.artifact_file, ctx.target.key)
        return snapshot


@dataclass
class InstallExtension(_AcceptInstall):
    """Accept a fresh install; rejects duplicates and already-installed packages."""

    def __call__(
        self,
        *,
        source_url: Optional[str],
        target: Optional[str] = None,
        port: Optional[int] = None,
    ) -> InstallationRecord:
        resolved, artifact, claim = self._claim(source_url, target, port)
        try:
            installed = find_installed_package(self.tasks, resolved, artifact, self.query_timeout_s)
        except Exception:
            self.registry.release(claim)
            raise
        if installed is not None:
            self.registry.release(claim)
            raise AlreadyInstalledError(
                f"package with rpmFile {artifact} is already installed on target {resolved.key}"
            )
        return self._launch(
            InstallationContext(
                target=resolved,
                source_url=str(source_url).strip(),
                artifact_file=artifact,
                claim=claim,
            )
        )


@dataclass
class ReinstallExtension(_AcceptInstall):
    """Uninstall the matching package (if any), then install afresh.

    There is no rollback: if the new install fails after the old package was
    removed, the target is left without it and the ERROR record says so.
    """

    def __call__(
        self,
        *,
        source_url: Optional[str],
        target: Optional[str] = None,
        port: Optional[int] = None,
    ) -> InstallationRecord:
        resolved, artifact, claim = self._claim(source_url, target, port)
        note = None
        try:
            installed = find_installed_package(self.tasks, resolved, artifact, self.query_timeout_s)
            if installed is not None:
                self.tasks.run_task(
                    resolved,
                    TaskOperation.UNINSTALL,
                    installed.package_name,
                    self.query_timeout_s,
                )
                note = f"previous package {installed.package_name} was uninstalled"
                self.registry.tag(claim, f"info: {note}")
        except ExtensionError as exc:
            self.registry.release(claim)
            raise ExtensionError(
                f"package in {artifact} could not be uninstalled to update on target "
                f"{resolved.key} - {describe(exc)}",
                code=exc.code,
                status=500,
            ) from exc
        except Exception:
            self.registry.release(claim)
            raise
        return self._launch(
            InstallationContext(
                target=resolved,
                source_url=str(source_url).strip(),
                artifact_file=artifact,
                claim=claim,
                failure_note=note,
            )
        )


__all__ = ["InstallExtension", "ReinstallExtension", "start_worker"]
