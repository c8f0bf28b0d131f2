from __future__ import annotations

import pytest
from conftest import FakeHandle, FakeRegistry, World, build_world, make_device, populated_cloud

from pycrownstone.devices import DeviceReconciler


@pytest.mark.asyncio
async def test_dim_capability_follows_dimmability(world: World) -> None:
    await world.sync()
    plug = FakeHandle("dev-01", capabilities={"onoff", "dim"})
    dimmer = FakeHandle("dev-02")
    reconciler = DeviceReconciler(FakeRegistry(plug, dimmer), world.fast_cache)

    assert await reconciler.update_devices() == 2

    assert plug.capabilities == {"onoff"}
    assert dimmer.capabilities == {"onoff", "dim"}


@pytest.mark.asyncio
async def test_capability_changes_are_idempotent(world: World) -> None:
    await world.sync()
    dimmer = FakeHandle("dev-02")
    reconciler = DeviceReconciler(FakeRegistry(dimmer), world.fast_cache)

    await reconciler.update_devices()
    await reconciler.update_devices()

    assert dimmer.calls.count("add_capability") == 1
    assert "remove_capability" not in dimmer.calls


@pytest.mark.asyncio
async def test_locked_device_becomes_unavailable_and_recovers_on_unlock() -> None:
    cloud = populated_cloud()
    cloud.devices["sphere-1"][0] = make_device("dev-01", locked=True)
    world = build_world(cloud)
    await world.sync()
    plug = FakeHandle("dev-01")
    reconciler = DeviceReconciler(FakeRegistry(plug), world.fast_cache)

    await reconciler.update_devices()
    await reconciler.update_devices()
    assert plug.available is False
    assert plug.unavailable_reason == "This device is locked."
    assert plug.calls.count("set_unavailable") == 1

    cloud.devices["sphere-1"][0] = make_device("dev-01", locked=False)
    await world.mirror.get_all()
    world.mapper.map_all()
    await reconciler.update_devices()

    assert plug.available is True
    assert plug.unavailable_reason is None


@pytest.mark.asyncio
async def test_platform_error_does_not_stop_the_pass(world: World) -> None:
    await world.sync()
    broken = FakeHandle("dev-01", capabilities={"onoff", "dim"})
    broken.fail = True
    dimmer = FakeHandle("dev-02")
    unknown = FakeHandle("dev-77")
    reconciler = DeviceReconciler(FakeRegistry(broken, unknown, dimmer), world.fast_cache)

    assert await reconciler.update_devices() == 1

    assert "dim" in dimmer.capabilities
    assert unknown.calls == []


@pytest.mark.asyncio
async def test_push_state_sets_capability_values(world: World) -> None:
    await world.sync()
    plug = FakeHandle("dev-01")
    dimmer = FakeHandle("dev-02", capabilities={"onoff", "dim"})
    reconciler = DeviceReconciler(FakeRegistry(plug, dimmer), world.fast_cache)

    for device_id in ("dev-01", "dev-02"):
        view = world.fast_cache.device(device_id)
        assert view is not None
        await reconciler.push_state(view)

    assert plug.values == {"onoff": False}
    assert dimmer.values == {"onoff": True, "dim": pytest.approx(0.4)}


@pytest.mark.asyncio
async def test_dispatcher_state_reaches_platform(world: World) -> None:
    await world.sync()
    dimmer = FakeHandle("dev-02", capabilities={"onoff", "dim"})
    reconciler = DeviceReconciler(FakeRegistry(dimmer), world.fast_cache)

    await world.dispatcher.set_dim("dev-02", 0.0)
    for view in world.state_changes:
        await reconciler.push_state(view)

    assert dimmer.values == {"onoff": False, "dim": 0.0}
