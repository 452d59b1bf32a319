"""Use case mapping a target identifier to a trusted :class:`Target`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fleetext.domain.errors import UntrustedTargetError
from fleetext.domain.ports import DeviceRegistryPort
from fleetext.domain.targets import Target, is_local_identifier, local_target


@dataclass
class ResolveTarget:
    """Resolve an address, trust UUID or ``local`` to a canonical target."""

    device_registry: DeviceRegistryPort
    management_port: int = 8100

    def __call__(self, identifier: Optional[str], port: Optional[int] = None) -> Target:
        if is_local_identifier(identifier):
            return local_target(self.management_port)

        wanted = str(identifier).strip()
        for device in self.device_registry.list_trusted_devices():
            if wanted not in (device.host, device.trust_uuid):
                continue
            if port is not None and int(port) != device.port:
                continue
            return device

        label = f"{wanted}:{port}" if port is not None else wanted
        raise UntrustedTargetError(f"target {label} is not a trusted device.")


__all__ = ["ResolveTarget"]
