"""Domain package exports for value objects, the registry and errors."""

from .errors import ExtensionError
from .inflight_registry import Claim, InFlightRegistry, make_key
from .installation import (
    InstallState,
    InstallationRecord,
    PackageIdentity,
    artifact_name_from_url,
)
from .ports import TaskOperation
from .targets import Target, local_target

__all__ = [
    "Claim",
    "ExtensionError",
    "InFlightRegistry",
    "InstallState",
    "InstallationRecord",
    "PackageIdentity",
    "TaskOperation",
    "Target",
    "artifact_name_from_url",
    "local_target",
    "make_key",
]
