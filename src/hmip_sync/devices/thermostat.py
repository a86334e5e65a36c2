"""Wall-mounted thermostat with humidity sensor."""

from __future__ import annotations

import logging

from hmip_sync.devices.base import DeviceBehavior, find_channel
from hmip_sync.models import Device, Group, Home

logger = logging.getLogger(__name__)

THERMOSTAT_CHANNEL = "WALL_MOUNTED_THERMOSTAT_PRO_CHANNEL"
HEATING_GROUP = "HEATING"


class ThermostatBehavior(DeviceBehavior):
    """Exposes current temperature, humidity and target temperature.

    The target temperature is owned by the heating group the thermostat
    belongs to; the channel's own set point is used only when no such group
    is in the group store.
    """

    device_type = "WALL_MOUNTED_THERMOSTAT_PRO"

    def update_device(self, home: Home, device: Device, groups: dict[str, Group]) -> None:
        self.home = home
        self.apply_information(device)

        channel = find_channel(device, THERMOSTAT_CHANNEL)
        if channel is None:
            logger.debug("Thermostat %s has no %s", device.id, THERMOSTAT_CHANNEL)
            return

        chars = self.accessory.characteristics
        if channel.get("actualTemperature") is not None:
            chars["current_temperature"] = channel["actualTemperature"]
        if channel.get("humidity") is not None:
            chars["current_humidity"] = channel["humidity"]

        target = channel.get("setPointTemperature")
        group = self._heating_group(channel.get("groups") or [], groups)
        if group is not None:
            target = (group.model_extra or {}).get("setPointTemperature", target)
        if target is not None:
            chars["target_temperature"] = target

    @staticmethod
    def _heating_group(group_ids: list[str], groups: dict[str, Group]) -> Group | None:
        for group_id in group_ids:
            group = groups.get(group_id)
            if group is not None and group.type == HEATING_GROUP:
                return group
        return None
