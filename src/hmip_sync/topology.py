"""In-memory mirror of the hub's home, groups and devices."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from hmip_sync.models import Device, Group, Home, Snapshot

logger = logging.getLogger(__name__)

HOME_OEM = "eQ-3"
HOME_MODEL_TYPE = "HmIPHome"


def normalize_home(home: Home) -> Home:
    """Stamp vendor, model and firmware tags onto *home* in place.

    Idempotent: the firmware version always mirrors ``currentAPVersion``.
    """
    home.oem = HOME_OEM
    home.modelType = HOME_MODEL_TYPE
    home.firmwareVersion = home.currentAPVersion
    return home


@dataclass
class TopologyStore:
    """Authoritative local copy of the hub topology.

    Attributes
    ----------
    home:
        The normalized home record, ``None`` until the first snapshot.
    groups:
        group id → latest group payload (last writer wins).
    devices:
        device id → latest device payload.
    """

    home: Home | None = None
    groups: dict[str, Group] = field(default_factory=dict)
    devices: dict[str, Device] = field(default_factory=dict)

    def load_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the whole store with *snapshot*."""
        self.set_home(snapshot.home)
        self.groups = dict(snapshot.groups)
        self.devices = dict(snapshot.devices)
        logger.debug(
            "Topology loaded: %d groups, %d devices", len(self.groups), len(self.devices)
        )

    def set_home(self, home: Home) -> Home:
        self.home = normalize_home(home)
        return self.home

    def upsert_group(self, group: Group) -> None:
        self.groups[group.id] = group

    def remove_group(self, group_id: str) -> None:
        self.groups.pop(group_id, None)

    def upsert_device(self, device: Device) -> None:
        self.devices[device.id] = device

    def remove_device(self, device_id: str) -> None:
        self.devices.pop(device_id, None)
