"""Wire models for the HomematicIP state snapshot and push-event feed.

All models keep unknown fields (``extra="allow"``) so hub-specific data is
passed through verbatim to the device behaviors and the accessory context.
"""

from __future__ import annotations

import enum
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class NotificationParseError(Exception):
    """Raised when a push envelope cannot be parsed into a Notification."""


class PushEventType(enum.StrEnum):
    """Push event kinds handled by the reconciliation engine."""

    GROUP_CHANGED = "GROUP_CHANGED"
    GROUP_ADDED = "GROUP_ADDED"
    GROUP_REMOVED = "GROUP_REMOVED"
    DEVICE_CHANGED = "DEVICE_CHANGED"
    DEVICE_ADDED = "DEVICE_ADDED"
    DEVICE_REMOVED = "DEVICE_REMOVED"
    HOME_CHANGED = "HOME_CHANGED"


class _PassThrough(BaseModel):
    model_config = ConfigDict(extra="allow")


class Home(_PassThrough):
    """The singleton installation record."""

    id: str
    currentAPVersion: str | None = None
    oem: str | None = None
    modelType: str | None = None
    firmwareVersion: str | None = None


class Group(_PassThrough):
    """A logical group of devices; everything beyond ``id`` is opaque."""

    id: str
    type: str | None = None
    label: str | None = None


class Device(_PassThrough):
    """A physical or virtual endpoint reported by the hub."""

    id: str
    type: str = ""
    label: str = ""
    modelType: str | None = None
    functionalChannels: dict[str, dict[str, Any]] = Field(default_factory=dict)


class Snapshot(_PassThrough):
    """Full state as returned by ``home/getCurrentState``."""

    home: Home
    groups: dict[str, Group] = Field(default_factory=dict)
    devices: dict[str, Device] = Field(default_factory=dict)


class Event(_PassThrough):
    """One entry of a push envelope.

    ``pushEventType`` is kept as a plain string so that kinds unknown to
    :class:`PushEventType` still parse and fall into the unhandled branch.
    """

    pushEventType: str
    group: Group | None = None
    device: Device | None = None
    home: Home | None = None

    @property
    def kind(self) -> PushEventType | None:
        try:
            return PushEventType(self.pushEventType)
        except ValueError:
            return None


class Notification(BaseModel):
    """A push envelope: ``{"events": {"0": {...}, "1": {...}}}``.

    Events are kept as raw values here and validated one at a time by the
    engine so a single bad entry does not discard the whole envelope.
    """

    model_config = ConfigDict(extra="allow")

    events: dict[str, Any] = Field(default_factory=dict)


def parse_notification(raw: bytes | str) -> Notification:
    """Decode one raw envelope from the websocket.

    Raises
    ------
    NotificationParseError
        If *raw* is not valid UTF-8 JSON or does not carry an ``events`` map.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise NotificationParseError(f"invalid JSON in push envelope: {exc}") from exc

    if not isinstance(data, dict):
        raise NotificationParseError(
            f"push envelope must be a JSON object, got {type(data).__name__}"
        )

    try:
        return Notification.model_validate(data)
    except ValidationError as exc:
        raise NotificationParseError(f"malformed push envelope: {exc}") from exc


def parse_event(raw_event: Any) -> Event:
    """Validate a single envelope entry.

    Raises
    ------
    NotificationParseError
        If the entry is not an object, lacks ``pushEventType`` or carries a
        malformed payload.
    """
    try:
        return Event.model_validate(raw_event)
    except ValidationError as exc:
        raise NotificationParseError(f"malformed push event: {exc}") from exc
