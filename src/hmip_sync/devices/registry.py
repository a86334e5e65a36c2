"""Device behavior registry: maps a device type tag to its behavior class."""

from __future__ import annotations

from hmip_sync.devices.access_point import AccessPointBehavior
from hmip_sync.devices.base import DeviceBehavior
from hmip_sync.devices.shutter import ShutterBehavior
from hmip_sync.devices.thermostat import ThermostatBehavior

BEHAVIORS: dict[str, type[DeviceBehavior]] = {
    cls.device_type: cls for cls in (ThermostatBehavior, ShutterBehavior, AccessPointBehavior)
}


def behavior_for(device_type: str) -> type[DeviceBehavior] | None:
    """Return the behavior class for *device_type*, or None if unsupported."""
    return BEHAVIORS.get(device_type)


def supported_types() -> list[str]:
    return sorted(BEHAVIORS)
