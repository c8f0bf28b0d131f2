"""Presence endpoint: GET /users/{userId}/currentLocation."""

from __future__ import annotations

from pycrownstone._api._common import authed_request, parse_list
from pycrownstone._transport import Transport
from pycrownstone.models.presence import CurrentLocation
from pycrownstone.session import Session


async def fetch_current_location(session: Session, transport: Transport) -> list[CurrentLocation]:
    endpoint = f"/users/{session.user_id}/currentLocation"
    payload = await authed_request(transport, session, "GET", endpoint)
    return parse_list(CurrentLocation, payload or [], endpoint=endpoint)
