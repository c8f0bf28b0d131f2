"""Presence models: room references, user presence, push events and polls."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from pycrownstone.models._base import CrownstoneBaseModel


class PresenceSource(StrEnum):
    POLL = "poll"
    PUSH = "push"


class PresenceEventKind(StrEnum):
    ENTER = "enterLocation"
    EXIT = "exitLocation"


class RoomRef(BaseModel):
    """A room identified by id and name (the state carried by triggers)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str

    def matches(self, room_id: str, room_name: str) -> bool:
        """Both id and name must be equal; a partial match is no match."""
        return self.id == room_id and self.name == room_name


class UserPresence(BaseModel):
    """Last known location of a user."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    sphere_id: str | None = None
    location: RoomRef | None = None
    timestamp: float
    """Epoch seconds of the observation this entry came from."""
    source: PresenceSource


class PresenceUpdate(BaseModel):
    """A single presence observation, from either a poll or a push event.

    Both sources go through the same monotonic merge in
    :class:`pycrownstone.state.presence.PresenceStore`.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    sphere_id: str | None = None
    location: RoomRef | None = None
    timestamp: float = Field(default_factory=time.time)
    source: PresenceSource

    @field_validator("user_id")
    @classmethod
    def _non_empty_user(cls, value: str) -> str:
        user_id = value.strip()
        if not user_id:
            raise ValueError("user_id must be non-empty")
        return user_id


class PushUser(CrownstoneBaseModel):
    id: str
    name: str = ""


class PushSphere(CrownstoneBaseModel):
    id: str
    name: str = ""


class PresenceEvent(CrownstoneBaseModel):
    """A push-delivered presence event.

    Only ``type == "presence"`` payloads with an enter/exit sub type are
    accepted; everything else fails validation.
    """

    type: str
    sub_type: PresenceEventKind
    user: PushUser
    location: RoomRef
    sphere: PushSphere | None = None
    timestamp: float = Field(default_factory=time.time)
    """Receive time (epoch seconds) unless the payload carries its own."""

    @model_validator(mode="before")
    @classmethod
    def _coerce_location(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        location = values.get("location")
        if isinstance(location, dict):
            values = dict(values)
            values["location"] = {"id": str(location.get("id", "")), "name": str(location.get("name", ""))}
        return values

    @field_validator("type")
    @classmethod
    def _presence_only(cls, value: str) -> str:
        if value != "presence":
            raise ValueError(f"not a presence event: {value!r}")
        return value

    @property
    def is_enter(self) -> bool:
        return self.sub_type is PresenceEventKind.ENTER

    def to_update(self) -> PresenceUpdate:
        return PresenceUpdate(
            user_id=self.user.id,
            sphere_id=self.sphere.id if self.sphere is not None else None,
            location=self.location if self.is_enter else None,
            timestamp=self.timestamp,
            source=PresenceSource.PUSH,
        )


class InLocation(CrownstoneBaseModel):
    location_id: str = Field(default="", validation_alias=AliasChoices("locationId", "location_id"))
    location_name: str = Field(default="", validation_alias=AliasChoices("locationName", "location_name"))


class InSphere(CrownstoneBaseModel):
    sphere_id: str = Field(default="", validation_alias=AliasChoices("sphereId", "sphere_id"))
    sphere_name: str = Field(default="", validation_alias=AliasChoices("sphereName", "sphere_name"))
    in_location: InLocation | None = Field(default=None, validation_alias=AliasChoices("inLocation", "in_location"))

    @property
    def room(self) -> RoomRef | None:
        if self.in_location is None or not self.in_location.location_id:
            return None
        return RoomRef(id=self.in_location.location_id, name=self.in_location.location_name)


class CurrentLocation(CrownstoneBaseModel):
    """One entry of the ``currentLocation`` poll (one per phone of the user)."""

    device_id: str = Field(default="", validation_alias=AliasChoices("deviceId", "device_id"))
    device_name: str = Field(default="", validation_alias=AliasChoices("deviceName", "device_name"))
    in_spheres: list[InSphere] = Field(default_factory=list, validation_alias=AliasChoices("inSpheres", "in_spheres"))
