from __future__ import annotations

import asyncio

import pytest
from conftest import FakeCloud, FakeHandle, FakeRadio, FakeRegistry, FakeSettings, FakeStream, populated_cloud

from pycrownstone.app import CrownstoneApp
from pycrownstone.config import CrownstoneConfig
from pycrownstone.models.command import CommandOutcome
from pycrownstone.models.presence import CurrentLocation, RoomRef
from pycrownstone.models.sphere import Location, Sphere


def _app(
    cloud: FakeCloud | None = None,
    settings: FakeSettings | None = None,
    *handles: FakeHandle,
) -> tuple[CrownstoneApp, FakeCloud, FakeStream, FakeSettings]:
    cloud = cloud if cloud is not None else populated_cloud()
    stream = FakeStream()
    settings = settings if settings is not None else FakeSettings(email="user@example.com", password="secret")
    app = CrownstoneApp(
        CrownstoneConfig(presence_poll_interval=3600),
        settings=settings,
        devices=FakeRegistry(*handles),
        radio=FakeRadio(),
        cloud=cloud,
        stream=stream,
    )
    return app, cloud, stream, settings


async def _drain() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_start_without_credentials_stays_idle() -> None:
    app, cloud, stream, _ = _app(None, FakeSettings())

    await app.start()

    assert cloud.calls == []
    assert stream.calls == []
    assert not app.logged_in
    await app.stop()


@pytest.mark.asyncio
async def test_start_synchronizes_and_updates_devices() -> None:
    dimmer = FakeHandle("dev-02")
    app, cloud, stream, _ = _app(None, None, dimmer)

    await app.start()
    try:
        assert app.logged_in
        assert stream.calls == ["stop", "stop", "login", "start"]
        assert app.raw_cache.generation == 1
        assert app.fast_cache.device("dev-01") is not None
        assert "dim" in dimmer.capabilities
    finally:
        await app.stop()

    assert stream.calls[-1] == "stop"
    assert not app.logged_in


@pytest.mark.asyncio
async def test_failed_login_keeps_app_up() -> None:
    cloud = populated_cloud()
    cloud.fail.add("login")
    app, _, stream, _ = _app(cloud)

    await app.start()

    assert not app.logged_in
    assert app.raw_cache.generation == 0
    assert "login" not in stream.calls
    await app.stop()


@pytest.mark.asyncio
async def test_event_server_failure_means_not_logged_in() -> None:
    app, _, stream, _ = _app()
    stream.fail_login = True

    assert await app.synchronize_cloud() is False
    assert not app.logged_in


@pytest.mark.asyncio
async def test_commands_are_skipped_while_app_is_logged_out() -> None:
    app, cloud, stream, _ = _app()
    stream.fail_login = True
    await app.synchronize_cloud()
    assert cloud.logged_in

    switch = await app.set_on_off("dev-01", True)
    dim = await app.set_dim("dev-02", 0.5)

    assert switch.outcome is CommandOutcome.SKIPPED
    assert dim.outcome is CommandOutcome.SKIPPED
    assert cloud.count("turn_on") == 0
    assert cloud.count("set_switch") == 0


@pytest.mark.parametrize(("email", "password"), [("", "secret"), ("user@example.com", "")])
@pytest.mark.asyncio
async def test_set_settings_rejects_empty_values(email: str, password: str) -> None:
    settings = FakeSettings()
    app, cloud, _, _ = _app(None, settings)

    assert await app.set_settings(email, password) is False
    assert settings.values == {}
    assert cloud.calls == []


@pytest.mark.asyncio
async def test_set_settings_stores_credentials_only_on_success() -> None:
    settings = FakeSettings()
    cloud = populated_cloud()
    cloud.fail.add("login")
    app, _, _, _ = _app(cloud, settings)

    assert await app.set_settings("user@example.com", "wrong") is False
    assert settings.values == {}

    cloud.fail.discard("login")
    try:
        assert await app.set_settings("user@example.com", "secret") is True
        assert settings.values == {"email": "user@example.com", "password": "secret"}
        assert app.raw_cache.generation == 1
    finally:
        await app.stop()


@pytest.mark.asyncio
async def test_data_change_event_triggers_resync() -> None:
    app, cloud, stream, _ = _app()
    await app.synchronize_cloud()
    assert cloud.count("get_spheres") == 1

    await stream.handler({"type": "dataChange", "subType": "stones", "operation": "update"})
    await _drain()

    assert cloud.count("get_spheres") == 2
    assert app.raw_cache.generation == 2
    await app.stop()


@pytest.mark.asyncio
async def test_ability_change_refreshes_one_device() -> None:
    plug = FakeHandle("dev-01")
    app, cloud, stream, _ = _app(None, None, plug)
    await app.synchronize_cloud()
    cloud.devices["sphere-1"][0] = cloud.devices["sphere-1"][0].model_copy(update={"locked": True})

    await stream.handler({"type": "abilityChange", "subType": "dimming", "stone": {"id": "dev-01"}})
    await _drain()

    assert cloud.count("get_device") == 1
    assert cloud.count("get_spheres") == 1
    assert plug.available is False
    await app.stop()


@pytest.mark.asyncio
async def test_concurrent_resyncs_do_not_overlap() -> None:
    app, cloud, _, _ = _app()
    await app.synchronize_cloud()

    results = await asyncio.gather(app.resync(), app.resync())

    assert results == [True, True]
    assert app.raw_cache.generation == 3


@pytest.mark.asyncio
async def test_get_rooms_uses_the_users_sphere() -> None:
    cloud = populated_cloud()
    cloud.spheres.append(Sphere(id="sphere-2", name="Office"))
    cloud.locations["sphere-2"] = [Location(id="loc-desk", name="Desk", sphere_id="sphere-2")]
    cloud.current_location = [
        CurrentLocation.model_validate(
            {
                "inSpheres": [
                    {"sphereId": "sphere-1", "inLocation": {"locationId": "loc-kitchen", "locationName": "Kitchen"}}
                ]
            }
        )
    ]
    app, _, _, _ = _app(cloud)
    await app.synchronize_cloud()

    rooms = await app.get_rooms()

    assert rooms == [RoomRef(id="loc-kitchen", name="Kitchen"), RoomRef(id="loc-living", name="Living room")]


@pytest.mark.asyncio
async def test_get_rooms_falls_back_to_all_rooms() -> None:
    cloud = populated_cloud()
    cloud.fail.add("get_current_location")
    app, _, _, _ = _app(cloud)
    await app.synchronize_cloud()

    rooms = await app.get_rooms()

    assert {room.id for room in rooms} == {"loc-kitchen", "loc-living"}
    assert await app.poll_presence() == 0


@pytest.mark.asyncio
async def test_commands_update_platform_capabilities() -> None:
    plug = FakeHandle("dev-01")
    app, cloud, _, _ = _app(None, None, plug)

    skipped = await app.set_on_off("dev-01", True)
    assert skipped.outcome is CommandOutcome.SKIPPED

    await app.synchronize_cloud()
    result = await app.set_on_off("dev-01", True)

    assert result.success
    assert plug.values == {"onoff": True}
    assert cloud.count("turn_on") == 1


@pytest.mark.asyncio
async def test_triggers_and_conditions_via_app() -> None:
    app, _, stream, _ = _app()
    await app.synchronize_cloud()
    entered: list[RoomRef] = []

    async def _action(room: RoomRef) -> None:
        entered.append(room)

    app.register_trigger("loc-kitchen", "Kitchen", _action)
    await stream.handler(
        {
            "type": "presence",
            "subType": "enterLocation",
            "user": {"id": "user-1"},
            "location": {"id": "loc-kitchen", "name": "Kitchen"},
        }
    )

    assert entered == [RoomRef(id="loc-kitchen", name="Kitchen")]
    assert await app.evaluate_condition("loc-kitchen", "Kitchen") is True
