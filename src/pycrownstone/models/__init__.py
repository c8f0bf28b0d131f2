"""Data models for Crownstone cloud payloads and local state."""

from pycrownstone.models._base import CloudTimestamp, CrownstoneBaseModel, parse_cloud_timestamp
from pycrownstone.models.command import (
    CommandClass,
    CommandOutcome,
    CommandResult,
    CommandTransport,
    StageOutcome,
    StageResult,
    next_transport,
)
from pycrownstone.models.device import Ability, DeviceRecord, Dimmability
from pycrownstone.models.keys import KeySet, KeyType, SphereKey
from pycrownstone.models.presence import (
    CurrentLocation,
    InLocation,
    InSphere,
    PresenceEvent,
    PresenceEventKind,
    PresenceSource,
    PresenceUpdate,
    PushSphere,
    PushUser,
    RoomRef,
    UserPresence,
)
from pycrownstone.models.sphere import Location, Sphere
from pycrownstone.models.token import AuthToken

__all__ = [
    "Ability",
    "AuthToken",
    "CloudTimestamp",
    "CommandClass",
    "CommandOutcome",
    "CommandResult",
    "CommandTransport",
    "CrownstoneBaseModel",
    "CurrentLocation",
    "DeviceRecord",
    "Dimmability",
    "InLocation",
    "InSphere",
    "KeySet",
    "KeyType",
    "Location",
    "PresenceEvent",
    "PresenceEventKind",
    "PresenceSource",
    "PresenceUpdate",
    "PushSphere",
    "PushUser",
    "RoomRef",
    "Sphere",
    "SphereKey",
    "StageOutcome",
    "StageResult",
    "UserPresence",
    "next_transport",
    "parse_cloud_timestamp",
]
