"""Mirror: pulls the full cloud state into the raw cache."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from pycrownstone._redact import mask_email
from pycrownstone.collaborators import CloudApi
from pycrownstone.exceptions import CrownstoneAuthenticationError, CrownstoneError, CrownstoneFetchError
from pycrownstone.models.device import DeviceRecord
from pycrownstone.models.presence import PresenceSource, PresenceUpdate
from pycrownstone.models.sphere import Location, Sphere
from pycrownstone.state.presence import PresenceStore
from pycrownstone.state.raw_cache import RawCache, RawSnapshot

if TYPE_CHECKING:
    from pycrownstone.events import PushEventListener

_logger = logging.getLogger(__name__)


class Mirror:
    """Authenticates against the cloud and mirrors its state.

    The mirror is the only writer of :class:`RawCache` and the poll-side
    writer of :class:`PresenceStore`.
    """

    def __init__(
        self,
        cloud: CloudApi,
        raw_cache: RawCache,
        presence: PresenceStore,
        *,
        push: PushEventListener | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cloud = cloud
        self._raw_cache = raw_cache
        self._presence = presence
        self._push = push
        self._clock = clock

    @property
    def user_id(self) -> str | None:
        return self._cloud.user_id

    async def login(self, email: str, password: str) -> None:
        """Establish the cloud session and (re)start the push stream.

        Raises
        ------
        CrownstoneAuthenticationError
            Bad credentials or unreachable service.  No cache is touched.
        """
        try:
            await self._cloud.login(email, password)
        except CrownstoneAuthenticationError:
            raise
        except CrownstoneError as exc:
            raise CrownstoneAuthenticationError(f"Cloud login failed: {exc}") from exc
        _logger.info("Logged in to the cloud as %s", mask_email(email))

        if self._push is None:
            return
        try:
            await self._push.login(email, password)
        except CrownstoneAuthenticationError:
            raise
        except CrownstoneError as exc:
            raise CrownstoneAuthenticationError(f"Push stream login failed: {exc}") from exc

    async def get_all(self) -> RawSnapshot:
        """Fetch spheres, locations and devices and swap in a new snapshot.

        A sub-resource that fails is logged and recorded in
        ``RawSnapshot.failures``; the pass keeps every sphere that
        succeeded.

        Raises
        ------
        CrownstoneFetchError
            The sphere list could not be fetched, or every sphere failed.
            The raw cache keeps its previous generation.
        """
        try:
            spheres = await self._cloud.get_spheres()
        except CrownstoneError as exc:
            raise CrownstoneFetchError(f"Could not fetch spheres: {exc}", failures=("spheres",)) from exc

        results = await asyncio.gather(*(self._fetch_sphere(sphere) for sphere in spheres))

        kept_spheres: list[Sphere] = []
        locations: list[Location] = []
        devices: list[DeviceRecord] = []
        failures: list[str] = []
        for sphere, (sphere_locations, sphere_devices, sphere_failures) in zip(spheres, results, strict=True):
            failures.extend(sphere_failures)
            if sphere_locations is None and sphere_devices is None:
                continue
            kept_spheres.append(sphere)
            locations.extend(sphere_locations or [])
            devices.extend(sphere_devices or [])

        if spheres and not kept_spheres:
            raise CrownstoneFetchError("Every sphere failed to fetch", failures=tuple(failures))

        if failures:
            _logger.warning("Mirror completed with partial data; failed: %s", ", ".join(failures))

        snapshot = self._raw_cache.replace(
            spheres=kept_spheres,
            locations=locations,
            devices=devices,
            failures=failures,
        )
        _logger.debug(
            "Mirrored generation=%d spheres=%d locations=%d devices=%d",
            snapshot.generation,
            len(snapshot.spheres),
            len(snapshot.locations),
            len(snapshot.devices),
        )
        return snapshot

    async def _fetch_sphere(
        self,
        sphere: Sphere,
    ) -> tuple[list[Location] | None, list[DeviceRecord] | None, list[str]]:
        failures: list[str] = []
        locations: list[Location] | None = None
        devices: list[DeviceRecord] | None = None
        try:
            locations = await self._cloud.get_locations(sphere.id)
        except CrownstoneError:
            _logger.warning("Could not fetch locations of sphere %s", sphere.id, exc_info=True)
            failures.append(f"sphere:{sphere.id}:locations")
        try:
            devices = await self._cloud.get_devices(sphere.id)
        except CrownstoneError:
            _logger.warning("Could not fetch devices of sphere %s", sphere.id, exc_info=True)
            failures.append(f"sphere:{sphere.id}:devices")
        return locations, devices, failures

    async def get_presence(self) -> int:
        """Poll the logged-in user's location into the presence store.

        The observation is stamped with the time the request was issued,
        so a poll racing a newer push event is discarded as stale.

        Returns the number of accepted presence updates.

        Raises
        ------
        CrownstoneFetchError
            The poll failed.
        """
        user_id = self._cloud.user_id
        if user_id is None:
            raise CrownstoneFetchError("Cannot poll presence before login", failures=("presence",))

        issued_at = self._clock()
        try:
            entries = await self._cloud.get_current_location()
        except CrownstoneError as exc:
            raise CrownstoneFetchError(f"Could not poll presence: {exc}", failures=("presence",)) from exc

        if not entries:
            _logger.info("Unable to locate user %s", user_id)
            return 0

        in_sphere = next((sphere for entry in entries for sphere in entry.in_spheres), None)
        update = PresenceUpdate(
            user_id=user_id,
            sphere_id=in_sphere.sphere_id if in_sphere is not None else None,
            location=in_sphere.room if in_sphere is not None else None,
            timestamp=issued_at,
            source=PresenceSource.POLL,
        )
        return 1 if self._presence.apply(update) else 0

    async def refresh_device(self, device_id: str) -> DeviceRecord:
        """Re-read one device (lock state, abilities) and swap in a new generation."""
        try:
            device = await self._cloud.get_device(device_id)
        except CrownstoneError as exc:
            raise CrownstoneFetchError(
                f"Could not fetch device {device_id}: {exc}",
                failures=(f"device:{device_id}",),
            ) from exc
        current = self._raw_cache.device(device_id)
        if current is not None and not device.sphere_id:
            device = device.model_copy(update={"sphere_id": current.sphere_id})
        self._raw_cache.replace_device(device)
        return device
