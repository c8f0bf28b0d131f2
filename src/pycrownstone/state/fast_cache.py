"""Fast-lookup projection of the raw mirror."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pycrownstone._constants import normalize_address
from pycrownstone.models.device import Dimmability
from pycrownstone.models.presence import RoomRef


class DeviceView(BaseModel):
    """A device as the rest of the system sees it."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    address: str = ""
    """Normalized radio address (lowercase, no separators)."""
    sphere_id: str = ""
    room: RoomRef | None = None
    room_known: bool = False
    """``False`` when the device has no location or points at a room that is not mirrored."""
    locked: bool = False
    dimmability: Dimmability = Dimmability.FIXED
    is_on: bool | None = None
    dim_level: float | None = None
    """Unit fraction, ``None`` when unknown."""

    @property
    def dimmable(self) -> bool:
        return self.dimmability is Dimmability.DIMMABLE


class FastSnapshot(BaseModel):
    """One immutable generation of the fast-lookup cache."""

    model_config = ConfigDict(frozen=True)

    raw_generation: int = 0
    presence_version: int = 0
    devices_by_id: dict[str, DeviceView] = Field(default_factory=dict)
    devices_by_address: dict[str, str] = Field(default_factory=dict)
    """Normalized radio address -> device id."""
    rooms: dict[str, RoomRef] = Field(default_factory=dict)
    room_spheres: dict[str, str] = Field(default_factory=dict)
    """Room id -> sphere id."""
    presence_by_location: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    """Room id -> sorted ids of the users currently in it."""

    def content_equals(self, other: FastSnapshot) -> bool:
        """Compare the projected content, ignoring the input versions."""
        return (
            self.devices_by_id == other.devices_by_id
            and self.devices_by_address == other.devices_by_address
            and self.rooms == other.rooms
            and self.room_spheres == other.room_spheres
            and self.presence_by_location == other.presence_by_location
        )


class FastCache:
    """Holder of the current :class:`FastSnapshot`.

    Read by many, written only by :class:`pycrownstone.mapper.Mapper`
    through :meth:`swap`.
    """

    def __init__(self) -> None:
        self._snapshot = FastSnapshot()

    @property
    def snapshot(self) -> FastSnapshot:
        return self._snapshot

    def swap(self, snapshot: FastSnapshot) -> None:
        self._snapshot = snapshot

    def device(self, device_id: str) -> DeviceView | None:
        return self._snapshot.devices_by_id.get(device_id)

    def device_by_address(self, address: str) -> DeviceView | None:
        snapshot = self._snapshot
        device_id = snapshot.devices_by_address.get(normalize_address(address))
        if device_id is None:
            return None
        return snapshot.devices_by_id.get(device_id)

    def devices(self) -> list[DeviceView]:
        return list(self._snapshot.devices_by_id.values())

    def room(self, room_id: str) -> RoomRef | None:
        return self._snapshot.rooms.get(room_id)

    def rooms(self, sphere_id: str | None = None) -> list[RoomRef]:
        snapshot = self._snapshot
        if sphere_id is None:
            return list(snapshot.rooms.values())
        return [room for room_id, room in snapshot.rooms.items() if snapshot.room_spheres.get(room_id) == sphere_id]

    def users_in(self, room_id: str) -> tuple[str, ...]:
        return self._snapshot.presence_by_location.get(room_id, ())
