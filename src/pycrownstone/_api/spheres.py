"""Sphere endpoints.

Endpoints:
  - GET /users/{userId}/spheres
  - GET /Spheres/{sphereId}/ownedLocations
  - GET /users/{userId}/keysV2
"""

from __future__ import annotations

import logging

from pycrownstone._api._common import authed_request, parse_list
from pycrownstone._transport import Transport
from pycrownstone.exceptions import CrownstoneApiError
from pycrownstone.models.keys import SphereKey
from pycrownstone.models.sphere import Location, Sphere
from pycrownstone.session import Session

_logger = logging.getLogger(__name__)


async def fetch_spheres(session: Session, transport: Transport) -> list[Sphere]:
    endpoint = f"/users/{session.user_id}/spheres"
    payload = await authed_request(transport, session, "GET", endpoint)
    return parse_list(Sphere, payload, endpoint=endpoint)


async def fetch_locations(session: Session, transport: Transport, sphere_id: str) -> list[Location]:
    """Fetch the rooms of a sphere; rooms without a sphere id inherit *sphere_id*."""
    endpoint = f"/Spheres/{sphere_id}/ownedLocations"
    payload = await authed_request(transport, session, "GET", endpoint)
    locations = parse_list(Location, payload, endpoint=endpoint)
    return [loc if loc.sphere_id else loc.model_copy(update={"sphere_id": sphere_id}) for loc in locations]


async def fetch_sphere_keys(session: Session, transport: Transport, sphere_id: str) -> list[SphereKey]:
    """Fetch the key entries of one sphere.

    The endpoint answers for every sphere of the user; entries of other
    spheres are discarded.
    """
    endpoint = f"/users/{session.user_id}/keysV2"
    payload = await authed_request(transport, session, "GET", endpoint)
    if not isinstance(payload, list):
        raise CrownstoneApiError(f"Expected a list from {endpoint}", endpoint=endpoint)
    for entry in payload:
        if isinstance(entry, dict) and str(entry.get("sphereId", "")) == sphere_id:
            return parse_list(SphereKey, entry.get("sphereKeys") or [], endpoint=endpoint)
    _logger.debug("No key entry for sphere=%s in %s", sphere_id, endpoint)
    return []
