"""Raw mirror of the cloud: the last fetched spheres, locations and devices."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field

from pycrownstone.models.device import DeviceRecord
from pycrownstone.models.sphere import Location, Sphere


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RawSnapshot(BaseModel):
    """One complete, immutable generation of the raw mirror."""

    model_config = ConfigDict(frozen=True)

    generation: int = 0
    fetched_at: datetime | None = None
    spheres: dict[str, Sphere] = Field(default_factory=dict)
    locations: dict[str, Location] = Field(default_factory=dict)
    devices: dict[str, DeviceRecord] = Field(default_factory=dict)
    failures: tuple[str, ...] = ()
    """Sub-resources that could not be fetched for this generation."""

    @property
    def is_empty(self) -> bool:
        return not self.spheres and not self.locations and not self.devices


class RawCache:
    """Holder of the current :class:`RawSnapshot`.

    Written only by the mirror.  Every write builds a new snapshot and
    swaps the single reference, so readers never observe a torn cache.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._snapshot = RawSnapshot()

    @property
    def snapshot(self) -> RawSnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    def replace(
        self,
        *,
        spheres: Iterable[Sphere],
        locations: Iterable[Location],
        devices: Iterable[DeviceRecord],
        failures: Iterable[str] = (),
    ) -> RawSnapshot:
        """Swap in a whole new generation."""
        snapshot = RawSnapshot(
            generation=self._snapshot.generation + 1,
            fetched_at=self._clock(),
            spheres={sphere.id: sphere for sphere in spheres},
            locations={location.id: location for location in locations},
            devices={device.id: device for device in devices},
            failures=tuple(failures),
        )
        self._snapshot = snapshot
        return snapshot

    def replace_device(self, device: DeviceRecord) -> RawSnapshot:
        """Swap in a new generation equal to the current one but for *device*."""
        current = self._snapshot
        devices = dict(current.devices)
        devices[device.id] = device
        return self.replace(
            spheres=current.spheres.values(),
            locations=current.locations.values(),
            devices=devices.values(),
            failures=current.failures,
        )

    def spheres(self) -> MappingProxyType[str, Sphere]:
        return MappingProxyType(self._snapshot.spheres)

    def device(self, device_id: str) -> DeviceRecord | None:
        return self._snapshot.devices.get(device_id)
