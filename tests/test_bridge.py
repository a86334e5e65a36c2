"""Tests for the bridge lifecycle (restore, discover, shutdown)."""

from __future__ import annotations

from pathlib import Path

import pytest

from hmip_sync.accessories import Accessory, AccessoryRegistry, accessory_uuid
from hmip_sync.bridge import HmIPBridge
from hmip_sync.config import HmIPConfig
from hmip_sync.gateway import HmIPCloudGateway
from tests.helpers import SHUTTER_PAYLOAD, FakeGateway, make_snapshot

pytestmark = pytest.mark.unit


@pytest.fixture
def config(storage_dir: Path) -> HmIPConfig:
    return HmIPConfig(
        access_point="3014F711A0000EDA0992FA32",
        auth_token="token",
        storage_dir=str(storage_dir),
    )


class TestHmIPBridge:
    def test_defaults_to_cloud_gateway(self, config: HmIPConfig, storage_dir: Path) -> None:
        bridge = HmIPBridge(config)
        assert isinstance(bridge.gateway, HmIPCloudGateway)
        assert bridge.registry.path.parent == storage_dir
        assert bridge.engine.bind_added_devices is False

    async def test_start_restores_then_discovers(
        self, config: HmIPConfig, storage_dir: Path
    ) -> None:
        AccessoryRegistry(storage_dir).register_new(
            [Accessory(uuid=accessory_uuid("d1"), display_name="Restored shutter")]
        )
        gateway = FakeGateway(make_snapshot(SHUTTER_PAYLOAD))
        bridge = HmIPBridge(config, gateway=gateway)

        assert await bridge.start() is True

        bound = bridge.engine.devices.get("d1")
        assert bound is not None
        assert bound.accessory.display_name == "Restored shutter"
        assert len(bridge.cache) == 1

    async def test_restart_keeps_identity(self, config: HmIPConfig) -> None:
        first = HmIPBridge(config, gateway=FakeGateway(make_snapshot(SHUTTER_PAYLOAD)))
        await first.start()
        uuid_before = first.engine.devices.get("d1").accessory.uuid  # type: ignore[union-attr]
        await first.shutdown()

        second = HmIPBridge(config, gateway=FakeGateway(make_snapshot(SHUTTER_PAYLOAD)))
        await second.start()

        assert second.engine.devices.get("d1").accessory.uuid == uuid_before  # type: ignore[union-attr]
        assert list(second.registry.registered) == [uuid_before]

    async def test_failed_session_binds_nothing(self, config: HmIPConfig) -> None:
        bridge = HmIPBridge(config, gateway=FakeGateway(init_ok=False))
        assert await bridge.start() is False
        assert len(bridge.engine.devices) == 0

    async def test_shutdown_unsubscribes_and_persists(
        self, config: HmIPConfig, storage_dir: Path
    ) -> None:
        gateway = FakeGateway(make_snapshot(SHUTTER_PAYLOAD))
        bridge = HmIPBridge(config, gateway=gateway)
        await bridge.start()

        await bridge.shutdown()

        assert gateway.calls[-1] == "unsubscribe"
        assert bridge.registry.path.exists()
