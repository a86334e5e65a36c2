"""Accessory identity, the restore cache, and the registration boundary.

An accessory is the externally visible representation of a bound device.
Its ``uuid`` is derived from the device id so the same device maps to the
same accessory across restarts.

- :class:`AccessoryCache` holds accessories restored at start-up plus every
  accessory resolved since; :meth:`AccessoryCache.resolve` never registers.
- :class:`AccessoryRegistry` is the registration boundary. It persists the
  registered set to ``accessories.json`` and refuses a second
  ``register_new`` for a uuid that is still registered.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "accessories.json"


class DuplicateAccessoryError(Exception):
    """Raised when ``register_new`` is called for an already registered uuid."""


def accessory_uuid(identity: str) -> str:
    """Derive a stable accessory uuid from a device identity.

    SHA-1 of the identity, laid out as an upper-case 8-4-4-4-12 string.
    """
    digest = hashlib.sha1(identity.encode("utf-8")).hexdigest()
    return "-".join(
        (digest[0:8], digest[8:12], digest[12:16], digest[16:20], digest[20:32])
    ).upper()


@dataclass
class Accessory:
    """An accessory handle.

    Attributes
    ----------
    uuid:
        Stable identity derived via :func:`accessory_uuid`.
    display_name:
        Name chosen when the accessory was first created.
    context:
        Free-form state persisted with the accessory; the latest device
        payload lives under ``context["device"]``.
    characteristics:
        Values exposed by the device behavior (e.g. ``current_position``).
    """

    uuid: str
    display_name: str
    context: dict[str, Any] = field(default_factory=dict)
    characteristics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Accessory:
        return cls(
            uuid=data["uuid"],
            display_name=data.get("display_name", ""),
            context=dict(data.get("context") or {}),
            characteristics=dict(data.get("characteristics") or {}),
        )


class AccessoryCache:
    """Lookup-by-identity pool of accessories known to this process."""

    def __init__(self) -> None:
        self._accessories: dict[str, Accessory] = {}

    def __len__(self) -> int:
        return len(self._accessories)

    def __contains__(self, uuid: str) -> bool:
        return uuid in self._accessories

    def configure_accessory(self, accessory: Accessory) -> None:
        """Restore hook: add a previously persisted accessory to the pool."""
        if accessory.uuid in self._accessories:
            return
        logger.info("Loading accessory from cache: %s", accessory.display_name)
        self._accessories[accessory.uuid] = accessory

    def find_by_identity(self, uuid: str) -> Accessory | None:
        return self._accessories.get(uuid)

    def remove(self, uuid: str) -> Accessory | None:
        return self._accessories.pop(uuid, None)

    def resolve(
        self,
        uuid: str,
        display_name: str,
        device_context: dict[str, Any],
    ) -> tuple[Accessory, bool]:
        """Return the accessory for *uuid*, creating it if unknown.

        A cached accessory keeps its display name but has its device context
        overwritten. The second element of the result tells whether the
        accessory already existed.
        """
        existing = self._accessories.get(uuid)
        if existing is None:
            logger.debug(
                "No cached accessory for %s; creating %r (pool: %s)",
                uuid,
                display_name,
                ", ".join(self._accessories) or "empty",
            )
            accessory = Accessory(uuid=uuid, display_name=display_name)
            self._accessories[uuid] = accessory
        else:
            accessory = existing
        accessory.context["device"] = device_context
        return accessory, existing is not None


class AccessoryRegistry:
    """File-backed set of accessories registered with the outside world.

    Parameters
    ----------
    storage_dir:
        Directory holding ``accessories.json``. Created on first save.
    """

    def __init__(self, storage_dir: Path) -> None:
        self._path = Path(storage_dir) / REGISTRY_FILENAME
        self._registered: dict[str, Accessory] = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def registered(self) -> dict[str, Accessory]:
        return dict(self._registered)

    def load(self) -> list[Accessory]:
        """Read persisted accessories and mark them as registered.

        A missing file yields an empty list. An unreadable file is logged and
        treated as empty so the bridge can still start.
        """
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read accessory cache %s: %s", self._path, exc)
            return []

        if not isinstance(raw, list):
            logger.warning(
                "Could not read accessory cache %s: expected a list, got %s",
                self._path,
                type(raw).__name__,
            )
            return []

        accessories = [
            Accessory.from_dict(entry)
            for entry in raw
            if isinstance(entry, dict) and "uuid" in entry
        ]
        self._registered = {acc.uuid: acc for acc in accessories}
        logger.debug("Loaded %d accessories from %s", len(accessories), self._path)
        return accessories

    def register_new(self, accessories: list[Accessory]) -> None:
        for accessory in accessories:
            if accessory.uuid in self._registered:
                raise DuplicateAccessoryError(
                    f"accessory {accessory.uuid} ({accessory.display_name!r}) "
                    "is already registered"
                )
        for accessory in accessories:
            self._registered[accessory.uuid] = accessory
            logger.info("Registered accessory %s (%s)", accessory.display_name, accessory.uuid)
        self.save()

    def update(self, accessories: list[Accessory]) -> None:
        for accessory in accessories:
            self._registered[accessory.uuid] = accessory
        self.save()

    def unregister(self, accessories: list[Accessory]) -> None:
        for accessory in accessories:
            if self._registered.pop(accessory.uuid, None) is None:
                logger.warning("Cannot unregister unknown accessory %s", accessory.uuid)
            else:
                logger.info(
                    "Unregistered accessory %s (%s)", accessory.display_name, accessory.uuid
                )
        self.save()

    def save(self) -> None:
        """Write the registered set to disk.

        The in-memory set stays authoritative: a failed write is logged and
        retried on the next save.
        """
        payload = [acc.to_dict() for acc in self._registered.values()]
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2, sort_keys=True))
        except OSError as exc:
            logger.error("Could not write accessory cache %s: %s", self._path, exc)
