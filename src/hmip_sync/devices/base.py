"""Abstract base class for device behaviors."""

from __future__ import annotations

import abc
from typing import Any

from hmip_sync.accessories import Accessory
from hmip_sync.models import Device, Group, Home

DEVICE_BASE_CHANNEL = "DEVICE_BASE"


class DeviceBehavior(abc.ABC):
    """Binds a hub device to an accessory and keeps its values current.

    The reconciliation engine only ever calls :meth:`update_device`;
    concrete behaviors translate the raw payload into accessory
    characteristics. Updates must be local, non-blocking state changes.
    """

    #: Device ``type`` tag this behavior handles.
    device_type: str = ""

    def __init__(self, home: Home, accessory: Accessory) -> None:
        self.home = home
        self.accessory = accessory

    @abc.abstractmethod
    def update_device(self, home: Home, device: Device, groups: dict[str, Group]) -> None:
        """Apply a device payload, the current home and the group store."""
        ...

    def apply_information(self, device: Device) -> None:
        """Write the accessory information shared by every behavior."""
        extra = device.model_extra or {}
        chars = self.accessory.characteristics
        chars["manufacturer"] = extra.get("oem", "eQ-3")
        chars["model"] = device.modelType or device.type
        chars["serial_number"] = device.id
        chars["firmware_revision"] = extra.get("firmwareVersion")

        base = find_channel(device, DEVICE_BASE_CHANNEL)
        if base is not None:
            chars["reachable"] = not base.get("unreach", False)
            if "lowBat" in base:
                chars["low_battery"] = bool(base.get("lowBat"))


def find_channel(device: Device, channel_type: str) -> dict[str, Any] | None:
    """Return the first functional channel of *channel_type*, if any."""
    for _index, channel in sorted(device.functionalChannels.items(), key=lambda kv: kv[0]):
        if channel.get("functionalChannelType") == channel_type:
            return channel
    return None
