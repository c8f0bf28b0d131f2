"""Device (stone) endpoints.

Endpoints:
  - GET  /Spheres/{sphereId}/ownedStones
  - GET  /Stones/{stoneId}
  - POST /Stones/{stoneId}/switch
"""

from __future__ import annotations

from typing import Any

from pycrownstone._api._common import authed_request, parse_list, parse_object
from pycrownstone._constants import DIM_MAX_PERCENT
from pycrownstone._transport import Transport
from pycrownstone.models.device import DeviceRecord
from pycrownstone.session import Session

# Related objects the projection needs, included in one round trip.
_DEVICE_FILTER: dict[str, Any] = {"include": ["abilities", "currentSwitchState"]}


async def fetch_devices(session: Session, transport: Transport, sphere_id: str) -> list[DeviceRecord]:
    endpoint = f"/Spheres/{sphere_id}/ownedStones"
    payload = await authed_request(transport, session, "GET", endpoint, params={"filter": _DEVICE_FILTER})
    devices = parse_list(DeviceRecord, payload, endpoint=endpoint)
    return [dev if dev.sphere_id else dev.model_copy(update={"sphere_id": sphere_id}) for dev in devices]


async def fetch_device(session: Session, transport: Transport, device_id: str) -> DeviceRecord:
    endpoint = f"/Stones/{device_id}"
    payload = await authed_request(transport, session, "GET", endpoint, params={"filter": _DEVICE_FILTER})
    return parse_object(DeviceRecord, payload, endpoint=endpoint)


def build_switch_request(*, on: bool | None = None, percentage: int | None = None) -> dict[str, Any]:
    """Body of the switch endpoint: either TURN_ON/TURN_OFF or a PERCENTAGE."""
    if percentage is not None:
        if not 0 <= percentage <= DIM_MAX_PERCENT:
            raise ValueError(f"percentage must be between 0 and {DIM_MAX_PERCENT}, got {percentage}")
        return {"type": "PERCENTAGE", "percentage": int(percentage)}
    if on is None:
        raise ValueError("Either on or percentage is required")
    return {"type": "TURN_ON" if on else "TURN_OFF"}


async def switch_device(
    session: Session,
    transport: Transport,
    device_id: str,
    *,
    on: bool | None = None,
    percentage: int | None = None,
) -> None:
    endpoint = f"/Stones/{device_id}/switch"
    body = build_switch_request(on=on, percentage=percentage)
    await authed_request(transport, session, "POST", endpoint, json_body=body)
