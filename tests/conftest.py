from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from pycrownstone.dispatcher import CommandDispatcher
from pycrownstone.exceptions import CrownstoneAuthenticationError, CrownstoneTransportError
from pycrownstone.keys import KeyCache
from pycrownstone.mapper import Mapper
from pycrownstone.mirror import Mirror
from pycrownstone.models.device import Ability, DeviceRecord
from pycrownstone.models.keys import SphereKey
from pycrownstone.models.presence import CurrentLocation
from pycrownstone.models.sphere import Location, Sphere
from pycrownstone.state.fast_cache import DeviceView, FastCache
from pycrownstone.state.presence import PresenceStore
from pycrownstone.state.raw_cache import RawCache


def make_device(
    device_id: str,
    *,
    sphere_id: str = "sphere-1",
    location_id: str | None = "loc-kitchen",
    address: str = "",
    dimmable: bool = False,
    locked: bool = False,
    switch_state: float = 0.0,
) -> DeviceRecord:
    return DeviceRecord(
        id=device_id,
        name=f"Plug {device_id}",
        address=address or f"AA:BB:CC:DD:EE:{device_id[-2:].upper()}",
        sphere_id=sphere_id,
        location_id=location_id,
        locked=locked,
        abilities=[Ability(type="dimming", enabled=dimmable)],
        switch_state=switch_state,
    )


def full_keys() -> list[SphereKey]:
    return [
        SphereKey(key_type="ADMIN_KEY", key="admin-secret"),
        SphereKey(key_type="MEMBER_KEY", key="member-secret"),
        SphereKey(key_type="BASIC_KEY", key="basic-secret"),
    ]


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@dataclass
class FakeCloud:
    """In-memory stand-in for :class:`pycrownstone.client.CrownstoneCloud`.

    ``fail`` holds call names (``"turn_on"``) or call names scoped to their
    first argument (``"get_devices:sphere-2"``) that raise a transport error.
    """

    spheres: list[Sphere] = field(default_factory=list)
    locations: dict[str, list[Location]] = field(default_factory=dict)
    devices: dict[str, list[DeviceRecord]] = field(default_factory=dict)
    keys: dict[str, list[SphereKey]] = field(default_factory=dict)
    current_location: list[CurrentLocation] = field(default_factory=list)
    fail: set[str] = field(default_factory=set)
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    switch_gate: asyncio.Event | None = None
    user_id: str | None = None
    logged_in: bool = False

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        scoped = f"{name}:{args[0]}" if args else name
        if name in self.fail or scoped in self.fail:
            raise CrownstoneTransportError(f"{name} failed", status_code=500, endpoint=name)

    async def login(self, email: str, password: str) -> None:
        self.calls.append(("login", email))
        if "login" in self.fail:
            raise CrownstoneAuthenticationError("invalid credentials")
        self.user_id = "user-1"
        self.logged_in = True

    async def get_spheres(self) -> list[Sphere]:
        self._record("get_spheres")
        return list(self.spheres)

    async def get_locations(self, sphere_id: str) -> list[Location]:
        self._record("get_locations", sphere_id)
        return list(self.locations.get(sphere_id, []))

    async def get_devices(self, sphere_id: str) -> list[DeviceRecord]:
        self._record("get_devices", sphere_id)
        return list(self.devices.get(sphere_id, []))

    async def get_device(self, device_id: str) -> DeviceRecord:
        self._record("get_device", device_id)
        for devices in self.devices.values():
            for device in devices:
                if device.id == device_id:
                    return device
        raise CrownstoneTransportError("not found", status_code=404, endpoint=f"/Stones/{device_id}")

    async def get_sphere_keys(self, sphere_id: str) -> list[SphereKey]:
        self._record("get_sphere_keys", sphere_id)
        return list(self.keys.get(sphere_id, []))

    async def get_current_location(self) -> list[CurrentLocation]:
        self._record("get_current_location")
        return list(self.current_location)

    async def _switch(self, name: str, device_id: str, *extra: Any) -> None:
        self.calls.append((name, device_id, *extra))
        if self.switch_gate is not None:
            await self.switch_gate.wait()
        if name in self.fail or f"{name}:{device_id}" in self.fail:
            raise CrownstoneTransportError(f"{name} failed", status_code=500, endpoint=name)

    async def turn_on(self, device_id: str) -> None:
        await self._switch("turn_on", device_id)

    async def turn_off(self, device_id: str) -> None:
        await self._switch("turn_off", device_id)

    async def set_switch(self, device_id: str, percentage: int) -> None:
        await self._switch("set_switch", device_id, percentage)


class FakeRadioSettings:
    def __init__(self) -> None:
        self.loaded: list[tuple[str | None, str | None, str | None]] = []

    def load_keys(self, admin_key: str | None, member_key: str | None, basic_key: str | None) -> None:
        self.loaded.append((admin_key, member_key, basic_key))


class FakeRadioControl:
    def __init__(self, log: list[tuple[Any, ...]]) -> None:
        self._log = log
        self.fail = False

    async def set_switch_state(self, state: int) -> None:
        self._log.append(("set_switch_state", state))
        if self.fail:
            raise RuntimeError("write failed")

    async def disconnect(self) -> None:
        self._log.append(("control_disconnect",))


class FakeRadio:
    """Radio link whose advertisements are keyed by normalized address."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.settings = FakeRadioSettings()
        self.control = FakeRadioControl(self.calls)
        self.advertisements: dict[str, Any] = {}
        self.hang = False

    async def discover(self, address: str, timeout: float) -> Any | None:
        self.calls.append(("discover", address, timeout))
        if self.hang:
            await asyncio.sleep(3600)
        return self.advertisements.get(address)

    async def connect(self, advertisement: Any) -> None:
        self.calls.append(("connect", advertisement))

    async def disconnect(self) -> None:
        self.calls.append(("disconnect",))

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeStream:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.handler: Any = None
        self.fail_login = False

    async def login(self, email: str, password: str) -> None:
        self.calls.append("login")
        if self.fail_login:
            raise CrownstoneAuthenticationError("event server rejected login")

    async def start(self, handler: Any) -> None:
        self.calls.append("start")
        self.handler = handler

    async def stop(self) -> None:
        self.calls.append("stop")
        self.handler = None


class FakeHandle:
    def __init__(self, device_id: str, *, capabilities: set[str] | None = None, available: bool = True) -> None:
        self.device_id = device_id
        self.available = available
        self.unavailable_reason: str | None = None
        self.capabilities = set(capabilities if capabilities is not None else {"onoff"})
        self.values: dict[str, Any] = {}
        self.calls: list[str] = []
        self.fail = False

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.fail:
            raise RuntimeError(f"{name} rejected by platform")

    async def set_available(self) -> None:
        self._check("set_available")
        self.available = True
        self.unavailable_reason = None

    async def set_unavailable(self, reason: str) -> None:
        self._check("set_unavailable")
        self.available = False
        self.unavailable_reason = reason

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    async def add_capability(self, capability: str) -> None:
        self._check("add_capability")
        self.capabilities.add(capability)

    async def remove_capability(self, capability: str) -> None:
        self._check("remove_capability")
        self.capabilities.discard(capability)

    async def set_capability_value(self, capability: str, value: Any) -> None:
        self._check("set_capability_value")
        self.values[capability] = value


class FakeRegistry:
    def __init__(self, *handles: FakeHandle) -> None:
        self.handles = list(handles)

    def get_devices(self) -> list[FakeHandle]:
        return list(self.handles)


class FakeSettings:
    def __init__(self, **values: str) -> None:
        self.values: dict[str, str] = dict(values)

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


def populated_cloud() -> FakeCloud:
    """One sphere with two rooms, a fixed plug and a dimmable plug."""
    return FakeCloud(
        spheres=[Sphere(id="sphere-1", name="Home")],
        locations={
            "sphere-1": [
                Location(id="loc-kitchen", name="Kitchen", sphere_id="sphere-1"),
                Location(id="loc-living", name="Living room", sphere_id="sphere-1"),
            ]
        },
        devices={
            "sphere-1": [
                make_device("dev-01", location_id="loc-kitchen"),
                make_device("dev-02", location_id="loc-living", dimmable=True, switch_state=0.4),
            ]
        },
        keys={"sphere-1": full_keys()},
    )


@dataclass
class World:
    cloud: FakeCloud
    radio: FakeRadio
    clock: FakeClock
    raw_cache: RawCache
    fast_cache: FastCache
    presence: PresenceStore
    mapper: Mapper
    mirror: Mirror
    keys: KeyCache
    dispatcher: CommandDispatcher
    state_changes: list[DeviceView]

    async def sync(self) -> None:
        await self.cloud.login("user@example.com", "secret")
        await self.mirror.get_all()
        self.mapper.map_all()


def build_world(cloud: FakeCloud | None = None, *, overlap_policy: str = "drop") -> World:
    cloud = cloud if cloud is not None else populated_cloud()
    radio = FakeRadio()
    clock = FakeClock()
    raw_cache = RawCache()
    fast_cache = FastCache()
    presence = PresenceStore()
    mapper = Mapper(raw_cache, fast_cache, presence)
    keys = KeyCache(cloud)
    state_changes: list[DeviceView] = []

    async def _listener(view: DeviceView) -> None:
        state_changes.append(view)

    dispatcher = CommandDispatcher(
        cloud,
        radio,
        keys,
        fast_cache,
        mapper,
        discovery_timeout=0.05,
        overlap_policy=overlap_policy,  # type: ignore[arg-type]
        on_state_change=_listener,
    )
    return World(
        cloud=cloud,
        radio=radio,
        clock=clock,
        raw_cache=raw_cache,
        fast_cache=fast_cache,
        presence=presence,
        mapper=mapper,
        mirror=Mirror(cloud, raw_cache, presence, clock=clock),
        keys=keys,
        dispatcher=dispatcher,
        state_changes=state_changes,
    )


@pytest.fixture
def world() -> World:
    return build_world()
