"""Bridge lifecycle: wires configuration, accessory storage and the engine."""

from __future__ import annotations

import logging

from hmip_sync.accessories import Accessory, AccessoryCache, AccessoryRegistry
from hmip_sync.config import HmIPConfig
from hmip_sync.engine import ReconciliationEngine
from hmip_sync.gateway import HmIPCloudGateway, SessionGateway

logger = logging.getLogger(__name__)


class HmIPBridge:
    """Owns one engine for one access point.

    Start-up order: restore persisted accessories into the cache, then run
    discovery. Shutdown closes the push feed and persists the registry.
    """

    def __init__(
        self,
        config: HmIPConfig,
        gateway: SessionGateway | None = None,
        registry: AccessoryRegistry | None = None,
    ) -> None:
        self.config = config
        self.cache = AccessoryCache()
        self.registry = registry or AccessoryRegistry(config.storage_path)
        self.gateway = gateway or HmIPCloudGateway(config)
        self.engine = ReconciliationEngine(
            self.gateway,
            self.cache,
            self.registry,
            bind_added_devices=config.bind_added_devices,
        )
        logger.debug("Finished initializing bridge for %s", config.access_point)

    def configure_accessory(self, accessory: Accessory) -> None:
        """Restore a previously registered accessory."""
        self.cache.configure_accessory(accessory)

    async def start(self) -> bool:
        for accessory in self.registry.load():
            self.configure_accessory(accessory)
        return await self.engine.discover()

    async def shutdown(self) -> None:
        logger.debug("Shutting down bridge for %s", self.config.access_point)
        await self.engine.shutdown()
        self.registry.save()
