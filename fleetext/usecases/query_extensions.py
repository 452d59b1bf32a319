"""Use case listing in-flight and installed extensions on one target."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from fleetext.domain.errors import NotInstalledError
from fleetext.domain.inflight_registry import InFlightRegistry
from fleetext.domain.installation import (
    REMOTE_DOWNLOAD_DIR,
    InstallationRecord,
    InstallState,
    PackageIdentity,
)
from fleetext.domain.ports import TaskOperation, TaskPort
from fleetext.domain.targets import Target
from fleetext.usecases.resolve_target import ResolveTarget

log = logging.getLogger(__name__)


def installed_packages(
    tasks: TaskPort,
    target: Target,
    timeout_s: Optional[float] = None,
    download_dir: str = REMOTE_DOWNLOAD_DIR,
) -> List[InstallationRecord]:
    """Run a QUERY task and return one AVAILABLE record per reported package.

    ``downloadUrl`` points at the upload location on the target.
    """
    response: Any = tasks.run_task(target, TaskOperation.QUERY, None, timeout_s)
    if not isinstance(response, list):
        log.warning("QUERY on %s returned no package list: %r", target.key, response)
        return []
    records = []
    for item in response:
        if not isinstance(item, dict):
            continue
        identity = PackageIdentity.from_payload(item)
        if not identity.package_name:
            continue
        artifact_file = f"{identity.package_name}.rpm"
        records.append(
            InstallationRecord(
                artifact_file=artifact_file,
                source_url=f"{target.base_url}{download_dir.rstrip('/')}/{artifact_file}",
                state=InstallState.AVAILABLE,
                identity=identity,
            )
        )
    return records


def find_installed_package(
    tasks: TaskPort,
    target: Target,
    artifact_file: str,
    timeout_s: Optional[float] = None,
) -> Optional[PackageIdentity]:
    """Identity of the installed package whose name prefixes ``artifact_file``."""
    for record in installed_packages(tasks, target, timeout_s):
        if artifact_file.startswith(record.identity.package_name):
            return record.identity
    return None


@dataclass
class QueryExtensions:
    """Snapshots of in-flight records for a target plus its installed packages."""

    registry: InFlightRegistry
    tasks: TaskPort
    resolve_target: ResolveTarget
    timeout_s: Optional[float] = None
    download_dir: str = REMOTE_DOWNLOAD_DIR

    def __call__(
        self,
        *,
        target: Optional[str] = None,
        port: Optional[int] = None,
        name: Optional[str] = None,
    ) -> List[InstallationRecord]:
        resolved = self.resolve_target(target, port)
        records = self.registry.snapshots(prefix=f"{resolved.key}:")
        records.extend(
            installed_packages(self.tasks, resolved, self.timeout_s, self.download_dir)
        )
        if not name:
            return records
        matches = [
            record
            for record in records
            if name in (record.identity.name, record.identity.package_name, record.artifact_file)
        ]
        if not matches:
            raise NotInstalledError(f"no extension with name {name} found.")
        return matches[:1]


__all__ = ["QueryExtensions", "find_installed_package", "installed_packages"]
