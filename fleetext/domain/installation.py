"""Installation record and its forward-only state machine."""

from __future__ import annotations

import copy
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from fleetext.domain.errors import ExtensionError, UnsupportedProtocolError

VALID_PROTOCOLS = ("file", "http", "https")
REMOTE_DOWNLOAD_DIR = "/var/config/rest/downloads"


class InstallState(str, Enum):
    REQUESTED = "REQUESTED"
    DOWNLOADING = "DOWNLOADING"
    UPLOADING = "UPLOADING"
    INSTALLING = "INSTALLING"
    AVAILABLE = "AVAILABLE"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


INSTALL_SEQUENCE = (
    InstallState.REQUESTED,
    InstallState.DOWNLOADING,
    InstallState.UPLOADING,
    InstallState.INSTALLING,
    InstallState.AVAILABLE,
)
TERMINAL_STATES = frozenset({InstallState.AVAILABLE, InstallState.ERROR})


class InvalidTransitionError(ValueError):
    """Raised when a record is asked to move backwards or out of a terminal state."""


def can_transition(current: InstallState, target: InstallState) -> bool:
    """Return whether ``current -> target`` is a legal record transition.

    Legal moves are the next step of :data:`INSTALL_SEQUENCE` or ERROR from any
    non-terminal state.
    """
    if current.is_terminal:
        return False
    if target is InstallState.ERROR:
        return True
    index = INSTALL_SEQUENCE.index(current)
    return index + 1 < len(INSTALL_SEQUENCE) and INSTALL_SEQUENCE[index + 1] is target


def artifact_name_from_url(source_url: str) -> str:
    """Derive the canonical artifact file name from the source URL path."""
    parsed = urlparse(str(source_url or "").strip())
    path = parsed.path or parsed.netloc
    return posixpath.basename(path.rstrip("/"))


def validate_source_url(source_url: Optional[str]) -> str:
    """Check a source URL and return its artifact file name.

    Raises:
        ExtensionError: The URL is missing or names no file.
        UnsupportedProtocolError: The scheme is not file, http or https.
    """
    url = str(source_url or "").strip()
    if not url:
        raise ExtensionError(
            "a download URL must be defined", code="URL_REQUIRED", status=400
        )
    if urlparse(url).scheme not in VALID_PROTOCOLS:
        raise UnsupportedProtocolError(
            f"extension url must use the following protocols: {list(VALID_PROTOCOLS)}"
        )
    artifact = artifact_name_from_url(url)
    if not artifact:
        raise ExtensionError(
            f"no artifact file name in url {url}", code="URL_INVALID", status=400
        )
    return artifact


@dataclass
class PackageIdentity:
    """Package metadata as reported by a target's QUERY task."""

    name: str = ""
    version: str = ""
    release: str = ""
    arch: str = ""
    package_name: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PackageIdentity":
        return cls(
            name=str(payload.get("name") or ""),
            version=str(payload.get("version") or ""),
            release=str(payload.get("release") or ""),
            arch=str(payload.get("arch") or ""),
            package_name=str(payload.get("packageName") or ""),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "release": self.release,
            "arch": self.arch,
            "packageName": self.package_name,
        }


@dataclass
class InstallationRecord:
    """Tracked state of one install operation for a (target, artifact) key."""

    artifact_file: str
    source_url: str
    state: InstallState = InstallState.REQUESTED
    identity: PackageIdentity = field(default_factory=PackageIdentity)
    tags: List[str] = field(default_factory=list)

    def transition(self, target: InstallState) -> None:
        if not can_transition(self.state, target):
            raise InvalidTransitionError(
                f"cannot move {self.artifact_file} from {self.state.value} to {target.value}"
            )
        self.state = target

    def fail(self, message: str) -> None:
        self.transition(InstallState.ERROR)
        self.tags.append(f"err: {message}")

    def snapshot(self) -> "InstallationRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "rpmFile": self.artifact_file,
            "downloadUrl": self.source_url,
            "state": self.state.value,
        }
        payload.update(self.identity.to_dict())
        payload["tags"] = list(self.tags)
        return payload


__all__ = [
    "INSTALL_SEQUENCE",
    "InstallState",
    "InstallationRecord",
    "InvalidTransitionError",
    "PackageIdentity",
    "REMOTE_DOWNLOAD_DIR",
    "TERMINAL_STATES",
    "VALID_PROTOCOLS",
    "artifact_name_from_url",
    "can_transition",
    "validate_source_url",
]
