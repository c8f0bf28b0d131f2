"""Application wiring: credentials, synchronization, timers and the public surface."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Coroutine
from typing import Any

import aiohttp

from pycrownstone._redact import mask_email
from pycrownstone._sse import CrownstoneEventStream
from pycrownstone.client import CrownstoneCloud
from pycrownstone.collaborators import CloudApi, DeviceRegistry, PushStream, RadioLink, SettingsStore
from pycrownstone.config import CrownstoneConfig
from pycrownstone.devices import DeviceReconciler
from pycrownstone.dispatcher import CommandDispatcher
from pycrownstone.events import PushEventListener
from pycrownstone.exceptions import CrownstoneAuthenticationError, CrownstoneFetchError
from pycrownstone.handler import FlowTrigger, PresenceReconciler, TriggerAction
from pycrownstone.keys import KeyCache
from pycrownstone.mapper import Mapper
from pycrownstone.mirror import Mirror
from pycrownstone.models.command import CommandResult
from pycrownstone.models.presence import RoomRef
from pycrownstone.state.fast_cache import FastCache
from pycrownstone.state.presence import PresenceStore
from pycrownstone.state.raw_cache import RawCache

_logger = logging.getLogger(__name__)

SETTING_EMAIL = "email"
SETTING_PASSWORD = "password"


class CrownstoneApp:
    """The home-automation integration as a whole.

    Usage::

        app = CrownstoneApp(config, settings=store, devices=registry, radio=link)
        await app.start()
        ...
        await app.stop()

    The cloud client and push stream are created from *config* unless
    passed in; anything created here is closed by :meth:`stop`.
    """

    def __init__(
        self,
        config: CrownstoneConfig,
        *,
        settings: SettingsStore,
        devices: DeviceRegistry,
        radio: RadioLink | None = None,
        cloud: CloudApi | None = None,
        stream: PushStream | None = None,
        http_session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._settings = settings
        self._owned_cloud: CrownstoneCloud | None = None
        self._owned_stream: CrownstoneEventStream | None = None
        if cloud is None:
            cloud = self._owned_cloud = CrownstoneCloud(config, session=http_session)
        if stream is None and config.push_enabled:
            stream = self._owned_stream = CrownstoneEventStream(config, session=http_session)
        self._cloud = cloud

        self.raw_cache = RawCache()
        self.fast_cache = FastCache()
        self.presence = PresenceStore()
        self.mapper = Mapper(self.raw_cache, self.fast_cache, self.presence)
        self.key_cache = KeyCache(cloud)
        self.device_reconciler = DeviceReconciler(devices, self.fast_cache)
        self.dispatcher = CommandDispatcher(
            cloud,
            radio,
            self.key_cache,
            self.fast_cache,
            self.mapper,
            discovery_timeout=config.discovery_timeout,
            overlap_policy=config.overlap_policy,
            on_state_change=self.device_reconciler.push_state,
            logged_in=lambda: self._logged_in,
        )
        self.reconciler = PresenceReconciler(
            self.presence,
            self.mapper,
            user_id=lambda: self._cloud.user_id,
            poll=self._poll_once,
        )
        self.push = (
            PushEventListener(stream, self.reconciler, on_data_change=self._on_data_change)
            if stream is not None
            else None
        )
        self.mirror = Mirror(cloud, self.raw_cache, self.presence, push=self.push, clock=clock)

        self._logged_in = False
        self._resync_lock = asyncio.Lock()
        self._poll_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def logged_in(self) -> bool:
        return self._logged_in

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Log in with the stored credentials and start the presence poll timer."""
        if not self.contains_account_settings():
            _logger.info("There are no account settings; cannot log in")
            return
        await self.synchronize_cloud()
        self.start_presence_polling()

    async def stop(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        background = list(self._background)
        for pending in background:
            pending.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        if self.push is not None:
            await self.push.stop()
        if self._owned_stream is not None:
            await self._owned_stream.close()
        if self._owned_cloud is not None:
            await self._owned_cloud.close()
        self._logged_in = False

    def contains_account_settings(self) -> bool:
        return bool(self._settings.get(SETTING_EMAIL)) and bool(self._settings.get(SETTING_PASSWORD))

    # ------------------------------------------------------------------
    # Credentials and synchronization
    # ------------------------------------------------------------------

    async def setup_connections(self, email: str, password: str) -> bool:
        """Log in to the cloud and the push stream; return the logged-in state."""
        self._logged_in = False
        if self.push is not None:
            await self.push.stop()
        try:
            await self.mirror.login(email, password)
        except CrownstoneAuthenticationError as exc:
            _logger.warning("There was a problem logging in as %s: %s", mask_email(email), exc)
            return False
        self._logged_in = True
        _logger.info("Authenticated with the cloud%s", " and event server" if self.push is not None else "")
        return True

    async def synchronize_cloud(self) -> bool:
        """Log in with the stored credentials, then mirror, map and update devices."""
        email = self._settings.get(SETTING_EMAIL) or ""
        password = self._settings.get(SETTING_PASSWORD) or ""
        if not await self.setup_connections(email, password):
            return False
        return await self.resync()

    async def set_settings(self, email: str, password: str) -> bool:
        """Apply new credentials from the settings page.

        The credentials are stored only when login succeeds.
        """
        if not email:
            _logger.info("No email address filled in")
            return False
        if not password:
            _logger.info("No password filled in")
            return False

        if not await self.setup_connections(email, password):
            return False
        self._settings.set(SETTING_EMAIL, email)
        self._settings.set(SETTING_PASSWORD, password)
        await self.resync()
        self.start_presence_polling()
        return self._logged_in

    async def resync(self) -> bool:
        """Full mirror, map and device update.  Never runs concurrently with itself."""
        async with self._resync_lock:
            try:
                await self.mirror.get_all()
            except CrownstoneFetchError as exc:
                _logger.warning("Could not obtain data from the cloud: %s", exc)
                return False
            self.mapper.map_all()
            await self.device_reconciler.update_devices()
            return True

    async def refresh_device(self, device_id: str) -> bool:
        """Re-read one device and reconcile it (after an ability change)."""
        async with self._resync_lock:
            try:
                await self.mirror.refresh_device(device_id)
            except CrownstoneFetchError as exc:
                _logger.warning("Could not refresh device %s: %s", device_id, exc)
                return False
            self.mapper.map_all()
            await self.device_reconciler.update_devices()
            return True

    async def _on_data_change(self, payload: dict[str, Any]) -> None:
        stone = payload.get("stone")
        device_id = stone.get("id") if isinstance(stone, dict) else None
        if payload.get("type") == "abilityChange" and device_id:
            self._spawn(self.refresh_device(str(device_id)))
        else:
            self._spawn(self.resync())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    def start_presence_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop(), name="crownstone-presence-poll")

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.presence_poll_interval)
            await self.poll_presence()

    async def _poll_once(self) -> int:
        return await self.mirror.get_presence()

    async def poll_presence(self) -> int:
        """One presence poll followed by a map pass; failures are logged."""
        try:
            accepted = await self.mirror.get_presence()
        except CrownstoneFetchError as exc:
            _logger.warning("There was a problem getting the user location: %s", exc)
            return 0
        self.mapper.map_all()
        return accepted

    async def get_rooms(self) -> list[RoomRef]:
        """Rooms of the sphere the user is in, or every known room."""
        user_id = self._cloud.user_id
        sphere_id: str | None = None
        if user_id is not None:
            await self.poll_presence()
            entry = self.presence.get(user_id)
            sphere_id = entry.sphere_id if entry is not None else None

        rooms = self.fast_cache.rooms(sphere_id) if sphere_id else []
        if not rooms:
            rooms = self.fast_cache.rooms()
        if not rooms:
            _logger.info("Unable to find any rooms")
        return sorted(rooms, key=lambda room: (room.name.lower(), room.id))

    def register_trigger(self, room_id: str, room_name: str, action: TriggerAction) -> FlowTrigger:
        return self.reconciler.register_trigger(room_id, room_name, action)

    def unregister_trigger(self, trigger: FlowTrigger) -> None:
        self.reconciler.unregister_trigger(trigger)

    async def evaluate_condition(self, room_id: str, room_name: str) -> bool:
        return await self.reconciler.evaluate_condition(room_id, room_name)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def set_on_off(self, device_id: str, on: bool) -> CommandResult:
        return await self.dispatcher.set_on_off(device_id, on)

    async def set_dim(self, device_id: str, fraction: float) -> CommandResult:
        return await self.dispatcher.set_dim(device_id, fraction)
