"""Per-sphere cache of the keys needed for radio commands."""

from __future__ import annotations

import asyncio
import logging

from pycrownstone.collaborators import CloudApi
from pycrownstone.exceptions import CrownstoneError, CrownstoneKeyFetchError
from pycrownstone.models.keys import KeySet

_logger = logging.getLogger(__name__)


class KeyCache:
    """Fetches sphere keys once and keeps them for the process lifetime.

    A complete :class:`KeySet` is never re-fetched.  An incomplete one is
    re-fetched on the next request.  Concurrent requests for the same
    sphere share one fetch.
    """

    def __init__(self, cloud: CloudApi) -> None:
        self._cloud = cloud
        self._keys: dict[str, KeySet] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, sphere_id: str) -> KeySet | None:
        return self._keys.get(sphere_id)

    async def ensure_keys(self, sphere_id: str) -> KeySet:
        """Return the sphere's keys, fetching them if any is missing.

        Raises
        ------
        CrownstoneKeyFetchError
            The cloud call failed.
        """
        cached = self._keys.get(sphere_id)
        if cached is not None and cached.is_complete:
            return cached

        lock = self._locks.setdefault(sphere_id, asyncio.Lock())
        async with lock:
            # Another caller may have completed the fetch while we waited.
            cached = self._keys.get(sphere_id)
            if cached is not None and cached.is_complete:
                return cached

            _logger.debug("Obtaining keys for sphere %s", sphere_id)
            try:
                entries = await self._cloud.get_sphere_keys(sphere_id)
            except CrownstoneError as exc:
                raise CrownstoneKeyFetchError(
                    f"Could not fetch keys of sphere {sphere_id}: {exc}",
                    sphere_id=sphere_id,
                ) from exc

            keyset = KeySet.from_sphere_keys(sphere_id, entries)
            if not keyset.is_complete:
                _logger.warning("Sphere %s returned an incomplete key set: %r", sphere_id, keyset)
            self._keys[sphere_id] = keyset
            return keyset
