"""Structural interfaces of the collaborators pycrownstone drives.

The cloud client, the push stream and the radio link have production
implementations (or are supplied by the host platform); the protocols
here make it easy to pass test doubles while keeping the components
decoupled from them.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol

from pycrownstone.models.device import DeviceRecord
from pycrownstone.models.keys import SphereKey
from pycrownstone.models.presence import CurrentLocation
from pycrownstone.models.sphere import Location, Sphere

PushHandler = Callable[[dict[str, Any]], Awaitable[None]]


class CloudApi(Protocol):
    """What the mirror, key cache and dispatcher need from the cloud."""

    @property
    def user_id(self) -> str | None: ...

    @property
    def logged_in(self) -> bool: ...

    async def login(self, email: str, password: str) -> None: ...

    async def get_spheres(self) -> list[Sphere]: ...

    async def get_locations(self, sphere_id: str) -> list[Location]: ...

    async def get_devices(self, sphere_id: str) -> list[DeviceRecord]: ...

    async def get_device(self, device_id: str) -> DeviceRecord: ...

    async def get_sphere_keys(self, sphere_id: str) -> list[SphereKey]: ...

    async def get_current_location(self) -> list[CurrentLocation]: ...

    async def turn_on(self, device_id: str) -> None: ...

    async def turn_off(self, device_id: str) -> None: ...

    async def set_switch(self, device_id: str, percentage: int) -> None: ...


class PushStream(Protocol):
    """A push-event session (server-sent events in production)."""

    async def login(self, email: str, password: str) -> None: ...

    async def start(self, handler: PushHandler) -> None: ...

    async def stop(self) -> None: ...


class RadioSettings(Protocol):
    def load_keys(self, admin_key: str | None, member_key: str | None, basic_key: str | None) -> None: ...


class RadioControl(Protocol):
    async def set_switch_state(self, state: int) -> None: ...

    async def disconnect(self) -> None: ...


class RadioLink(Protocol):
    """Short-range radio link used as the command fallback.

    ``discover`` returns an opaque advertisement, or ``None`` when the
    device was not seen within *timeout* seconds.
    """

    @property
    def settings(self) -> RadioSettings: ...

    @property
    def control(self) -> RadioControl: ...

    async def discover(self, address: str, timeout: float) -> Any | None: ...

    async def connect(self, advertisement: Any) -> None: ...

    async def disconnect(self) -> None: ...


class DeviceHandle(Protocol):
    """A platform-visible device object."""

    @property
    def device_id(self) -> str: ...

    @property
    def available(self) -> bool: ...

    async def set_available(self) -> None: ...

    async def set_unavailable(self, reason: str) -> None: ...

    def has_capability(self, capability: str) -> bool: ...

    async def add_capability(self, capability: str) -> None: ...

    async def remove_capability(self, capability: str) -> None: ...

    async def set_capability_value(self, capability: str, value: Any) -> None: ...


class DeviceRegistry(Protocol):
    """The platform's list of paired devices."""

    def get_devices(self) -> Iterable[DeviceHandle]: ...


class SettingsStore(Protocol):
    """Platform settings storage (credentials)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...
