"""REST adapter for the local device registry (device groups and their devices).

Dependencies:
    - ``RetryingSession`` for requests with the local basic credentials.

Call context:
    - ``ResolveTarget`` lists trusted devices through this adapter before any
      remote operation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fleetext.adapters.api_errors import json_object, raise_for_status
from fleetext.adapters.http_client import HttpConfig, RetryingSession
from fleetext.domain.ports import DeviceRegistryPort
from fleetext.domain.targets import Target

UNDISCOVERED = "UNDISCOVERED"
DEVICE_GROUPS_PATH = "/mgmt/shared/resolver/device-groups"


class DeviceRegistryRestAdapter(DeviceRegistryPort):
    """Flatten trusted devices across the device groups this system owns."""

    def __init__(
        self,
        base_url: str,
        cfg: HttpConfig,
        *,
        auth=None,
        group_prefix: str = "fleetext",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.group_prefix = group_prefix
        self.session = RetryingSession(cfg, auth=auth)
        self._log = logging.getLogger(__name__)

    def list_trusted_devices(self) -> List[Target]:
        groups = self._owned_groups()
        devices: List[Target] = []
        for group_name in groups:
            url = f"{self.base_url}{DEVICE_GROUPS_PATH}/{group_name}/devices"
            resp = self.session.get(url)
            raise_for_status(resp, f"list_devices[{group_name}]")
            payload = json_object(resp, f"list_devices[{group_name}]")
            for item in payload.get("items") or []:
                if not isinstance(item, dict):
                    continue
                # Trusted devices carry an mcpDeviceName once discovery completed.
                if "mcpDeviceName" not in item and item.get("state") != UNDISCOVERED:
                    continue
                try:
                    port = int(item.get("httpsPort") or 443)
                except (TypeError, ValueError):
                    self._log.warning("Skipping device with bad port: %s", item.get("httpsPort"))
                    continue
                devices.append(
                    Target(
                        host=str(item.get("address") or ""),
                        port=port,
                        trust_uuid=str(item.get("machineId") or item.get("uuid") or ""),
                        discovery_state=str(item.get("state") or ""),
                    )
                )
        return devices

    def ensure_device_group(self, name: str) -> Dict[str, Any]:
        url = f"{self.base_url}{DEVICE_GROUPS_PATH}"
        body = {
            "groupName": name,
            "display": name,
            "description": "Trusted targets for extension orchestration",
        }
        resp = self.session.post(url, json_body=body)
        raise_for_status(resp, f"ensure_device_group[{name}]")
        self._log.info("Created device group %s", name)
        return json_object(resp, f"ensure_device_group[{name}]")

    def _owned_groups(self) -> List[str]:
        resp = self.session.get(f"{self.base_url}{DEVICE_GROUPS_PATH}")
        raise_for_status(resp, "list_device_groups")
        payload = json_object(resp, "list_device_groups")
        names = [
            str(item.get("groupName") or "")
            for item in payload.get("items") or []
            if isinstance(item, dict)
        ]
        owned = [name for name in names if name.startswith(self.group_prefix)]
        if not owned:
            self.ensure_device_group(self.group_prefix)
        return owned


__all__ = ["DeviceRegistryRestAdapter", "UNDISCOVERED"]
