"""Payload builders and fakes shared by the hmip-sync tests."""

from __future__ import annotations

import copy
import json
from typing import Any

from hmip_sync.models import Snapshot

HOME_PAYLOAD: dict[str, Any] = {
    "id": "home-1",
    "currentAPVersion": "1.0",
    "connected": True,
    "weather": {"temperature": 11.5},
}

SHUTTER_PAYLOAD: dict[str, Any] = {
    "id": "d1",
    "type": "FULL_FLUSH_SHUTTER",
    "label": "Shutter",
    "modelType": "HmIP-FROLL",
    "firmwareVersion": "1.4.2",
    "functionalChannels": {
        "0": {"functionalChannelType": "DEVICE_BASE", "unreach": False, "index": 0},
        "1": {
            "functionalChannelType": "SHUTTER_CHANNEL",
            "shutterLevel": 0.25,
            "processing": False,
            "index": 1,
        },
    },
}

THERMOSTAT_PAYLOAD: dict[str, Any] = {
    "id": "t1",
    "type": "WALL_MOUNTED_THERMOSTAT_PRO",
    "label": "Living room",
    "modelType": "HmIP-WTH-2",
    "functionalChannels": {
        "0": {"functionalChannelType": "DEVICE_BASE", "unreach": False, "lowBat": False},
        "1": {
            "functionalChannelType": "WALL_MOUNTED_THERMOSTAT_PRO_CHANNEL",
            "actualTemperature": 21.3,
            "humidity": 45,
            "setPointTemperature": 19.0,
            "groups": ["g-meta", "g-heat"],
        },
    },
}

SWITCH_PAYLOAD: dict[str, Any] = {
    "id": "s1",
    "type": "PLUGABLE_SWITCH",
    "label": "Lamp",
    "modelType": "HmIP-PS",
    "functionalChannels": {},
}

HEATING_GROUP_PAYLOAD: dict[str, Any] = {
    "id": "g-heat",
    "type": "HEATING",
    "label": "Living room",
    "setPointTemperature": 22.5,
}


def payload(base: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Deep-copy *base* and apply top-level *overrides*."""
    data = copy.deepcopy(base)
    data.update(overrides)
    return data


def make_snapshot(*devices: dict[str, Any], groups: list[dict[str, Any]] | None = None) -> Snapshot:
    return Snapshot.model_validate(
        {
            "home": copy.deepcopy(HOME_PAYLOAD),
            "groups": {g["id"]: copy.deepcopy(g) for g in groups or []},
            "devices": {d["id"]: copy.deepcopy(d) for d in devices},
        }
    )


def envelope(*events: dict[str, Any]) -> bytes:
    """Encode push events the way the hub frames them."""
    return json.dumps({"events": {str(i): e for i, e in enumerate(events)}}).encode()


class FakeGateway:
    """In-memory session gateway that records calls and captures the subscriber."""

    def __init__(self, snapshot: Snapshot | None = None, init_ok: bool = True) -> None:
        self.snapshot = snapshot or make_snapshot()
        self.init_ok = init_ok
        self.calls: list[str] = []
        self.on_message: Any = None

    async def init_session(self) -> bool:
        self.calls.append("init_session")
        return self.init_ok

    async def fetch_snapshot(self, path: str = "home/getCurrentState") -> Snapshot:
        self.calls.append(f"fetch_snapshot:{path}")
        return self.snapshot

    async def subscribe(self, on_message: Any) -> None:
        self.calls.append("subscribe")
        self.on_message = on_message

    async def unsubscribe(self) -> None:
        self.calls.append("unsubscribe")
        self.on_message = None

    def push(self, *events: dict[str, Any]) -> None:
        """Deliver one envelope to the subscriber."""
        assert self.on_message is not None, "not subscribed"
        self.on_message(envelope(*events))

