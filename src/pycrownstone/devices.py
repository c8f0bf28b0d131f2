"""Keeps platform device objects consistent with the fast cache."""

from __future__ import annotations

import logging

from pycrownstone._constants import CAPABILITY_DIM, CAPABILITY_ONOFF, LOCKED_REASON
from pycrownstone.collaborators import DeviceHandle, DeviceRegistry
from pycrownstone.state.fast_cache import DeviceView, FastCache

_logger = logging.getLogger(__name__)


class DeviceReconciler:
    def __init__(self, registry: DeviceRegistry, fast_cache: FastCache) -> None:
        self._registry = registry
        self._fast_cache = fast_cache

    async def update_devices(self) -> int:
        """Apply lock state and dim capability to every known platform device.

        Returns the number of devices reconciled.  A device whose
        platform calls fail is logged and skipped.
        """
        count = 0
        for handle in list(self._registry.get_devices()):
            view = self._fast_cache.device(handle.device_id)
            if view is None:
                _logger.debug("Platform device %s has no cloud record", handle.device_id)
                continue
            try:
                await self.reconcile(handle, view)
            except Exception:
                _logger.exception("Could not update device %s", handle.device_id)
                continue
            count += 1
        return count

    async def reconcile(self, handle: DeviceHandle, view: DeviceView) -> None:
        if view.locked:
            if handle.available:
                await handle.set_unavailable(LOCKED_REASON)
        elif not handle.available:
            await handle.set_available()

        has_dim = handle.has_capability(CAPABILITY_DIM)
        if view.dimmable and not has_dim:
            _logger.debug("Adding dim capability to %s", view.id)
            await handle.add_capability(CAPABILITY_DIM)
        elif not view.dimmable and has_dim:
            _logger.debug("Removing dim capability from %s", view.id)
            await handle.remove_capability(CAPABILITY_DIM)

    async def push_state(self, view: DeviceView) -> None:
        """Forward inferred switch state to the matching platform device."""
        handle = next((h for h in self._registry.get_devices() if h.device_id == view.id), None)
        if handle is None:
            return
        if view.is_on is not None:
            await handle.set_capability_value(CAPABILITY_ONOFF, view.is_on)
        if view.dim_level is not None and view.dimmable and handle.has_capability(CAPABILITY_DIM):
            await handle.set_capability_value(CAPABILITY_DIM, view.dim_level)
