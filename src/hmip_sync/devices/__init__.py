"""Device behaviors and the type registry."""

from hmip_sync.devices.base import DeviceBehavior
from hmip_sync.devices.registry import BEHAVIORS, behavior_for, supported_types

__all__ = ["BEHAVIORS", "DeviceBehavior", "behavior_for", "supported_types"]
