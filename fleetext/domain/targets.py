"""Target device value objects."""

from __future__ import annotations

from dataclasses import dataclass

LOCAL_HOST = "localhost"
LOCAL_ALIASES = frozenset({"", "local", LOCAL_HOST})


@dataclass(frozen=True)
class Target:
    """A managed device (or the local management endpoint)."""

    host: str
    port: int
    trust_uuid: str = ""
    discovery_state: str = ""

    @property
    def is_local(self) -> bool:
        return self.host == LOCAL_HOST

    @property
    def scheme(self) -> str:
        """Local management endpoint is plain HTTP, trusted devices use HTTPS."""
        return "http" if self.is_local else "https"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def key(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def staging_name(self) -> str:
        """Per-target staging subdirectory; colons (IPv6) are not path safe."""
        return f"{self.host}_{self.port}".replace(":", "_")


def local_target(port: int) -> Target:
    return Target(host=LOCAL_HOST, port=int(port))


def is_local_identifier(identifier: str | None) -> bool:
    return str(identifier or "").strip().lower() in LOCAL_ALIASES


__all__ = ["LOCAL_HOST", "Target", "is_local_identifier", "local_target"]
