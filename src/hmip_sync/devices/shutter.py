"""Flush-mounted shutter actuator."""

from __future__ import annotations

import logging

from hmip_sync.devices.base import DeviceBehavior, find_channel
from hmip_sync.models import Device, Group, Home

logger = logging.getLogger(__name__)

SHUTTER_CHANNEL = "SHUTTER_CHANNEL"

POSITION_DECREASING = 0
POSITION_INCREASING = 1
POSITION_STOPPED = 2


class ShutterBehavior(DeviceBehavior):
    """Exposes ``current_position`` in percent open.

    The hub reports ``shutterLevel`` from 0.0 (fully open) to 1.0 (fully
    closed).
    """

    device_type = "FULL_FLUSH_SHUTTER"

    def update_device(self, home: Home, device: Device, groups: dict[str, Group]) -> None:
        self.home = home
        self.apply_information(device)

        channel = find_channel(device, SHUTTER_CHANNEL)
        if channel is None:
            logger.debug("Shutter %s has no %s", device.id, SHUTTER_CHANNEL)
            return

        level = channel.get("shutterLevel")
        if level is None:
            return
        position = round((1.0 - float(level)) * 100)
        chars = self.accessory.characteristics
        previous = chars.get("current_position")

        if not channel.get("processing", False) or previous is None or previous == position:
            state = POSITION_STOPPED
        elif position > previous:
            state = POSITION_INCREASING
        else:
            state = POSITION_DECREASING

        chars["current_position"] = position
        chars["position_state"] = state
        if state == POSITION_STOPPED:
            chars["target_position"] = position
        logger.debug("%s: shutter level %s -> position %d%%", device.label, level, position)
