"""Use case removing an extension (and cancelling any in-flight install of it)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from fleetext.domain.errors import ExtensionError, NotInstalledError
from fleetext.domain.inflight_registry import InFlightRegistry, make_key
from fleetext.domain.installation import artifact_name_from_url
from fleetext.domain.ports import TaskOperation, TaskPort
from fleetext.usecases.error_mapping import describe
from fleetext.usecases.query_extensions import find_installed_package
from fleetext.usecases.resolve_target import ResolveTarget

log = logging.getLogger(__name__)


@dataclass
class UninstallExtension:
    registry: InFlightRegistry
    tasks: TaskPort
    resolve_target: ResolveTarget
    timeout_s: Optional[float] = None

    def __call__(
        self,
        *,
        source_url: Optional[str],
        target: Optional[str] = None,
        port: Optional[int] = None,
    ) -> Dict[str, str]:
        artifact = artifact_name_from_url(source_url or "")
        if not artifact:
            raise ExtensionError(
                "a download URL must be defined to uninstall a package",
                code="URL_REQUIRED",
                status=400,
            )
        resolved = self.resolve_target(target, port)
        # Removing the key is the cancellation signal for a running flow.
        cancelled = self.registry.cancel(make_key(resolved, artifact))

        installed = find_installed_package(self.tasks, resolved, artifact, self.timeout_s)
        if installed is not None:
            try:
                self.tasks.run_task(
                    resolved, TaskOperation.UNINSTALL, installed.package_name, self.timeout_s
                )
            except ExtensionError as exc:
                raise ExtensionError(
                    f"package in {artifact} could not be uninstalled on target "
                    f"{resolved.key} - {describe(exc)}",
                    code=exc.code,
                    status=500,
                ) from exc
        elif not cancelled:
            raise NotInstalledError(f"package in {artifact} not installed on target {resolved.key}")

        log.info("Uninstalled %s on %s", artifact, resolved.key)
        return {"msg": f"package in rpmFile {artifact} uninstalled on target {resolved.key}"}


__all__ = ["UninstallExtension"]
