from __future__ import annotations

import asyncio
from typing import Any

import pytest
from conftest import FakeStream, World

from pycrownstone._sse import CrownstoneEventStream, parse_sse_lines
from pycrownstone.config import CrownstoneConfig
from pycrownstone.events import PushEventListener
from pycrownstone.exceptions import CrownstoneAuthenticationError
from pycrownstone.handler import PresenceReconciler
from pycrownstone.models.presence import RoomRef


def _listener(world: World, stream: FakeStream, changes: list[dict[str, Any]]) -> PushEventListener:
    async def _poll() -> int:
        return 0

    async def _on_change(payload: dict[str, Any]) -> None:
        changes.append(payload)

    reconciler = PresenceReconciler(world.presence, world.mapper, user_id=lambda: "user-1", poll=_poll)
    return PushEventListener(stream, reconciler, on_data_change=_on_change)


@pytest.mark.asyncio
async def test_login_replaces_running_session(world: World) -> None:
    stream = FakeStream()
    listener = _listener(world, stream, [])

    await listener.login("user@example.com", "secret")

    assert stream.calls == ["stop", "login", "start"]
    assert stream.handler == listener.handle


@pytest.mark.asyncio
async def test_presence_payload_reaches_presence_store(world: World) -> None:
    await world.sync()
    listener = _listener(world, FakeStream(), [])

    await listener.handle(
        {
            "type": "presence",
            "subType": "enterLocation",
            "user": {"id": "user-1", "name": "Ada"},
            "location": {"id": "loc-kitchen", "name": "Kitchen"},
        }
    )

    entry = world.presence.get("user-1")
    assert entry is not None and entry.location == RoomRef(id="loc-kitchen", name="Kitchen")


@pytest.mark.asyncio
async def test_data_change_events_request_resync(world: World) -> None:
    changes: list[dict[str, Any]] = []
    listener = _listener(world, FakeStream(), changes)

    await listener.handle({"type": "dataChange", "subType": "stones", "operation": "update"})
    await listener.handle({"type": "abilityChange", "subType": "dimming", "stone": {"id": "dev-02"}})

    assert [change["type"] for change in changes] == ["dataChange", "abilityChange"]


@pytest.mark.asyncio
async def test_unknown_and_malformed_events_are_ignored(world: World) -> None:
    changes: list[dict[str, Any]] = []
    listener = _listener(world, FakeStream(), changes)

    await listener.handle({"type": "ping", "counter": 3})
    await listener.handle({"type": "presence", "subType": "enterLocation"})

    assert changes == []
    assert world.presence.snapshot() == {}


def test_parse_sse_lines_joins_data_fields() -> None:
    assert parse_sse_lines(["event: message", 'data: {"a":', "data: 1}"]) == '{"a":\n1}'
    assert parse_sse_lines([": keep-alive"]) is None
    assert parse_sse_lines(["data:{}"]) == "{}"


class _LoginTransport:
    async def request(self, method: str, endpoint: str, **_kwargs: Any) -> Any:
        return {"id": "sse-token", "userId": "user-1"}


@pytest.mark.asyncio
async def test_event_stream_requires_login_before_start() -> None:
    stream = CrownstoneEventStream(CrownstoneConfig(), transport=_LoginTransport())

    async def _handler(payload: dict[str, Any]) -> None:
        return None

    with pytest.raises(CrownstoneAuthenticationError):
        await stream.start(_handler)

    await stream.login("user@example.com", "secret")
    assert not stream.is_running
    await stream.stop()


@pytest.mark.asyncio
async def test_event_stream_forwards_json_objects_only() -> None:
    stream = CrownstoneEventStream(CrownstoneConfig(), transport=_LoginTransport())
    received: list[dict[str, Any]] = []

    async def _handler(payload: dict[str, Any]) -> None:
        received.append(payload)
        raise RuntimeError("handler bug")

    await stream._dispatch('{"type": "ping"}', _handler)
    await stream._dispatch("[1, 2]", _handler)
    await stream._dispatch("not json", _handler)

    assert received == [{"type": "ping"}]


@pytest.mark.asyncio
async def test_event_stream_survives_unexpected_reader_errors() -> None:
    stream = CrownstoneEventStream(CrownstoneConfig(sse_reconnect_delay=0.01), transport=_LoginTransport())
    reads: list[int] = []
    connected = asyncio.Event()

    async def _read(handler: Any) -> None:
        reads.append(len(reads))
        if len(reads) == 1:
            raise ValueError("Chunk too big")
        connected.set()
        await asyncio.Event().wait()

    async def _handler(payload: dict[str, Any]) -> None:
        return None

    stream._read = _read  # type: ignore[method-assign]
    await stream.login("user@example.com", "secret")
    await stream.start(_handler)

    await asyncio.wait_for(connected.wait(), timeout=1.0)
    assert len(reads) == 2
    assert stream.is_running

    await stream.close()
    assert not stream.is_running
