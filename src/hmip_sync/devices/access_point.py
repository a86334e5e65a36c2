"""The home control access point itself."""

from __future__ import annotations

from hmip_sync.devices.base import DeviceBehavior, find_channel
from hmip_sync.models import Device, Group, Home

ACCESS_CONTROLLER_CHANNEL = "ACCESS_CONTROLLER_CHANNEL"


class AccessPointBehavior(DeviceBehavior):
    """Exposes hub health: firmware, duty cycle and cloud connection."""

    device_type = "HOME_CONTROL_ACCESS_POINT"

    def update_device(self, home: Home, device: Device, groups: dict[str, Group]) -> None:
        self.home = home
        self.apply_information(device)

        chars = self.accessory.characteristics
        chars["firmware_revision"] = home.firmwareVersion
        chars["connected"] = bool((home.model_extra or {}).get("connected", True))

        channel = find_channel(device, ACCESS_CONTROLLER_CHANNEL)
        if channel is not None:
            chars["duty_cycle_level"] = channel.get("dutyCycleLevel")
            chars["carrier_sense_level"] = channel.get("carrierSenseLevel")
