"""Mapper: projects the raw mirror and presence store into the fast cache."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pycrownstone._constants import normalize_address
from pycrownstone.models.device import DeviceRecord
from pycrownstone.models.presence import RoomRef, UserPresence
from pycrownstone.state.fast_cache import DeviceView, FastCache, FastSnapshot
from pycrownstone.state.presence import PresenceStore
from pycrownstone.state.raw_cache import RawCache, RawSnapshot

_logger = logging.getLogger(__name__)


def _project_device(device: DeviceRecord, rooms: Mapping[str, RoomRef]) -> DeviceView:
    room = rooms.get(device.location_id) if device.location_id else None
    if device.location_id and room is None:
        _logger.debug("Device %s references unknown location %s", device.id, device.location_id)
    return DeviceView(
        id=device.id,
        name=device.name,
        address=normalize_address(device.address),
        sphere_id=device.sphere_id,
        room=room,
        room_known=room is not None,
        locked=device.locked,
        dimmability=device.dimmability,
        is_on=device.is_on,
        dim_level=device.switch_state,
    )


def project(
    raw: RawSnapshot,
    presence: Mapping[str, UserPresence],
    *,
    presence_version: int = 0,
) -> FastSnapshot:
    """Deterministic, pure projection of *raw* and *presence*."""
    rooms = {location.id: RoomRef(id=location.id, name=location.name) for location in raw.locations.values()}
    room_spheres = {location.id: location.sphere_id for location in raw.locations.values()}

    devices_by_id: dict[str, DeviceView] = {}
    devices_by_address: dict[str, str] = {}
    for device_id in sorted(raw.devices):
        view = _project_device(raw.devices[device_id], rooms)
        devices_by_id[device_id] = view
        if view.address:
            if view.address in devices_by_address:
                _logger.warning(
                    "Radio address %s shared by devices %s and %s",
                    view.address,
                    devices_by_address[view.address],
                    device_id,
                )
            devices_by_address.setdefault(view.address, device_id)

    occupants: dict[str, list[str]] = {}
    for user_id, entry in presence.items():
        if entry.location is not None:
            occupants.setdefault(entry.location.id, []).append(user_id)

    return FastSnapshot(
        raw_generation=raw.generation,
        presence_version=presence_version,
        devices_by_id=devices_by_id,
        devices_by_address=devices_by_address,
        rooms=rooms,
        room_spheres=room_spheres,
        presence_by_location={room_id: tuple(sorted(users)) for room_id, users in sorted(occupants.items())},
    )


class Mapper:
    """Sole writer of the fast cache.

    ``map_all`` runs without suspension points, so within the event loop
    it always observes one complete raw generation.
    """

    def __init__(self, raw_cache: RawCache, fast_cache: FastCache, presence: PresenceStore) -> None:
        self._raw_cache = raw_cache
        self._fast_cache = fast_cache
        self._presence = presence

    def map_all(self) -> FastSnapshot:
        """Rebuild the fast cache; a no-op when no input changed since the last pass."""
        raw = self._raw_cache.snapshot
        version = self._presence.version
        current = self._fast_cache.snapshot
        if current.raw_generation == raw.generation and current.presence_version == version:
            return current

        if current.raw_generation == raw.generation:
            # Only presence moved; keep inferred device state recorded since the last mirror.
            rebuilt = project(raw, self._presence.snapshot(), presence_version=version)
            snapshot = rebuilt.model_copy(update={"devices_by_id": current.devices_by_id})
        else:
            snapshot = project(raw, self._presence.snapshot(), presence_version=version)
        self._fast_cache.swap(snapshot)
        return snapshot

    def apply_switch_state(
        self,
        device_id: str,
        *,
        is_on: bool | None = None,
        dim_level: float | None = None,
    ) -> DeviceView | None:
        """Record inferred device state after a command.

        ``None`` leaves a field unchanged.  Returns the updated view, or
        ``None`` when the device is not in the cache.
        """
        current = self._fast_cache.snapshot
        view = current.devices_by_id.get(device_id)
        if view is None:
            return None
        update: dict[str, object] = {}
        if is_on is not None:
            update["is_on"] = is_on
        if dim_level is not None:
            update["dim_level"] = max(0.0, min(1.0, dim_level))
        if not update:
            return view
        updated = view.model_copy(update=update)
        if updated == view:
            return view
        self._swap_device(current, updated)
        return updated

    def restore_device(self, view: DeviceView, *, expected: DeviceView | None = None) -> DeviceView | None:
        """Put back a previously observed view (used to revert optimistic state).

        With *expected*, the revert only happens while the cached view still
        equals it; a newer recorded state is left alone and ``None`` is
        returned.
        """
        current = self._fast_cache.snapshot
        existing = current.devices_by_id.get(view.id)
        if existing is None:
            return None
        if expected is not None and existing != expected:
            _logger.debug("Device %s changed since the optimistic update; not reverting", view.id)
            return None
        if existing != view:
            self._swap_device(current, view)
        return view

    def _swap_device(self, current: FastSnapshot, view: DeviceView) -> None:
        devices = dict(current.devices_by_id)
        devices[view.id] = view
        self._fast_cache.swap(current.model_copy(update={"devices_by_id": devices}))
