"""Reconciliation engine: keeps the topology mirror and bound devices in sync.

Discovery runs once: init the session, load the full snapshot, bind every
supported device to an accessory, then subscribe to the push feed. From
then on each push envelope is applied event by event, in envelope order,
to the :class:`~hmip_sync.topology.TopologyStore` and the device binding
table. Handling one envelope never suspends, so the stores only ever see a
single writer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from hmip_sync.accessories import (
    Accessory,
    AccessoryCache,
    AccessoryRegistry,
    DuplicateAccessoryError,
    accessory_uuid,
)
from hmip_sync.devices import DeviceBehavior, behavior_for
from hmip_sync.gateway import CURRENT_STATE_PATH, SessionGateway
from hmip_sync.models import (
    Device,
    Event,
    Home,
    NotificationParseError,
    PushEventType,
    parse_event,
    parse_notification,
)
from hmip_sync.topology import TopologyStore

logger = logging.getLogger(__name__)


@dataclass
class BoundDevice:
    """A device joined to its accessory and behavior."""

    device_id: str
    accessory: Accessory
    behavior: DeviceBehavior

    @property
    def home(self) -> Home:
        return self.behavior.home

    @home.setter
    def home(self, home: Home) -> None:
        self.behavior.home = home


class DeviceBindingTable:
    """device id → :class:`BoundDevice`; at most one entry per id."""

    def __init__(self) -> None:
        self._bound: dict[str, BoundDevice] = {}

    def __len__(self) -> int:
        return len(self._bound)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._bound

    def __iter__(self) -> Iterator[BoundDevice]:
        return iter(list(self._bound.values()))

    def get(self, device_id: str) -> BoundDevice | None:
        return self._bound.get(device_id)

    def bind(self, bound: BoundDevice) -> None:
        self._bound[bound.device_id] = bound

    def unbind(self, device_id: str) -> BoundDevice | None:
        return self._bound.pop(device_id, None)

    def ids(self) -> list[str]:
        return list(self._bound)


class ReconciliationEngine:
    """Applies the snapshot and the push feed to the local stores.

    Parameters
    ----------
    gateway:
        Session gateway delivering the snapshot and the push feed.
    cache:
        Accessory pool, already populated with restored accessories.
    registry:
        Registration boundary for accessories.
    bind_added_devices:
        Policy for ``DEVICE_ADDED`` on an id that is not bound. ``False``
        logs and ignores it (the snapshot is treated as exhaustive);
        ``True`` binds it like a snapshot device.
    """

    def __init__(
        self,
        gateway: SessionGateway,
        cache: AccessoryCache,
        registry: AccessoryRegistry,
        *,
        bind_added_devices: bool = False,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.registry = registry
        self.bind_added_devices = bind_added_devices
        self.topology = TopologyStore()
        self.devices = DeviceBindingTable()
        self._subscribed = False

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, path: str = CURRENT_STATE_PATH) -> bool:
        """Load the snapshot, bind devices and subscribe to the push feed.

        Returns ``False`` without touching any state when the session
        cannot be initialised.
        """
        if not await self.gateway.init_session():
            logger.warning("Session initialisation failed; skipping device discovery.")
            return False

        snapshot = await self.gateway.fetch_snapshot(path)
        self.topology.load_snapshot(snapshot)

        for device_id, device in snapshot.devices.items():
            self.bind_device(device_id, device)

        logger.info(
            "Discovery finished: %d of %d devices bound.",
            len(self.devices),
            len(snapshot.devices),
        )

        await self.gateway.subscribe(self.handle_message)
        self._subscribed = True
        return True

    def bind_device(self, device_id: str, device: Device) -> BoundDevice | None:
        """Resolve the accessory for *device* and bind its behavior.

        Unsupported device types are logged and skipped; nothing is bound
        or registered for them.
        """
        assert self.topology.home is not None

        behavior_cls = behavior_for(device.type)
        if behavior_cls is None:
            logger.warning("Device not implemented: %s - %s", device.modelType, device.label)
            return None

        uuid = accessory_uuid(device_id)
        accessory, preexisting = self.cache.resolve(
            uuid, device.label, device.model_dump(mode="json")
        )

        # Registration comes first; a device is bound only once it is registered.
        if preexisting:
            self.registry.update([accessory])
        else:
            try:
                self.registry.register_new([accessory])
            except DuplicateAccessoryError as exc:
                self.cache.remove(uuid)
                logger.error("Cannot bind device %s: %s", device_id, exc)
                return None

        behavior = behavior_cls(self.topology.home, accessory)
        bound = BoundDevice(device_id=device_id, accessory=accessory, behavior=behavior)
        self.devices.bind(bound)
        self._dispatch(bound, device)
        return bound

    # ------------------------------------------------------------------
    # Push feed
    # ------------------------------------------------------------------

    def handle_message(self, raw: bytes | str) -> None:
        """Apply one push envelope.

        A malformed envelope is logged and skipped; a malformed entry inside
        a valid envelope is skipped without affecting its siblings.
        """
        try:
            notification = parse_notification(raw)
        except NotificationParseError as exc:
            logger.warning("Skipping push notification: %s", exc)
            return

        for key, raw_event in notification.events.items():
            try:
                event = parse_event(raw_event)
            except NotificationParseError as exc:
                logger.warning("Skipping push event %s: %s", key, exc)
                continue
            self.apply_event(event)

    def apply_event(self, event: Event) -> None:
        """Apply a single push event to the stores."""
        kind = event.kind

        if kind in (PushEventType.GROUP_CHANGED, PushEventType.GROUP_ADDED):
            if event.group is not None:
                logger.debug("%s: %s", event.pushEventType, event.group.id)
                self.topology.upsert_group(event.group)

        elif kind == PushEventType.GROUP_REMOVED:
            if event.group is not None:
                logger.debug("%s: %s", event.pushEventType, event.group.id)
                self.topology.remove_group(event.group.id)

        elif kind == PushEventType.DEVICE_REMOVED:
            if event.device is not None:
                self._remove_device(event)

        elif kind in (PushEventType.DEVICE_CHANGED, PushEventType.DEVICE_ADDED):
            if event.device is not None:
                self._change_device(event)

        elif kind == PushEventType.HOME_CHANGED:
            if event.home is not None:
                self._change_home(event.home)

        else:
            logger.debug(
                "Unhandled event type: %s group=%s device=%s",
                event.pushEventType,
                event.group.id if event.group else None,
                event.device.id if event.device else None,
            )

    def _remove_device(self, event: Event) -> None:
        device = event.device
        assert device is not None
        logger.debug("%s: %s %s", event.pushEventType, device.id, device.modelType)

        bound = self.devices.get(device.id)
        if bound is None:
            logger.warning("Cannot find device: %s", device.id)
            return

        self.devices.unbind(device.id)
        self.topology.remove_device(device.id)
        self.cache.remove(bound.accessory.uuid)
        self.registry.unregister([bound.accessory])

    def _change_device(self, event: Event) -> None:
        device = event.device
        assert device is not None
        logger.debug("%s: %s %s", event.pushEventType, device.id, device.modelType)

        bound = self.devices.get(device.id)
        if bound is None:
            if event.kind == PushEventType.DEVICE_ADDED and self.bind_added_devices:
                logger.info("Binding device added after discovery: %s", device.id)
                self.topology.upsert_device(device)
                self.bind_device(device.id, device)
                return
            logger.warning("Cannot find device: %s", device.id)
            return

        self.topology.upsert_device(device)
        bound.accessory.context["device"] = device.model_dump(mode="json")
        self._dispatch(bound, device)

    def _change_home(self, home: Home) -> None:
        logger.debug("%s: %s", PushEventType.HOME_CHANGED, home.id)
        home = self.topology.set_home(home)

        for bound in self.devices:
            bound.home = home
            self._dispatch(bound, self.topology.devices[bound.device_id])

    def _dispatch(self, bound: BoundDevice, device: Device) -> None:
        home = self.topology.home
        assert home is not None
        try:
            bound.behavior.update_device(home, device, self.topology.groups)
        except Exception:
            logger.exception("Update failed for device %s", bound.device_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Close the push feed subscription and release the session."""
        await self.gateway.unsubscribe()
        self._subscribed = False
