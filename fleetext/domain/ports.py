from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from fleetext.domain.targets import Target


class TaskOperation(str, Enum):
    QUERY = "QUERY"
    INSTALL = "INSTALL"
    UNINSTALL = "UNINSTALL"


# ---- Ports (Hexagonal boundaries) ----
class DeviceRegistryPort(Protocol):
    """Trusted devices known to the local management endpoint."""

    def list_trusted_devices(self) -> List[Target]: ...
    def ensure_device_group(self, name: str) -> Dict[str, Any]: ...


class CredentialPort(Protocol):
    """Short-lived upload tokens for remote targets (``None`` for local)."""

    def get_upload_token(self, target_host: str) -> Optional[str]: ...


class StagerPort(Protocol):
    def stage(
        self, source_url: str, target: Target
    ) -> Optional[str]: ...  # staged file name or None


class UploaderPort(Protocol):
    def upload(self, target: Target, staged_filename: str) -> bool: ...


class TaskPort(Protocol):
    """Asynchronous package-management tasks on a target."""

    def submit_task(
        self, target: Target, operation: TaskOperation, payload: Optional[str] = None
    ) -> str: ...  # task id
    def poll_until_done(
        self, target: Target, task_id: str, timeout_s: Optional[float] = None
    ) -> Any: ...  # queryResponse or full body
    def run_task(
        self,
        target: Target,
        operation: TaskOperation,
        payload: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ) -> Any: ...
